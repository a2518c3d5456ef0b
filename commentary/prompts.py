"""
Prompt text for the AI commentary on the selected instrument.
"""

from __future__ import annotations

from models.market import Instrument

# =============================================================================
# COMMENTARY PROMPT
# =============================================================================

COMMENTARY_PERSONA = "You are a seasoned stock trader."

COMMENTARY_INSTRUCTION = (
    "Based on this stock's performance in a simulated market, give one witty "
    "remark that includes an investment tip, about 50 characters long. "
    "Output only the remark."
)


def build_commentary_prompt(instrument: Instrument) -> str:
    """Embed the instrument's name, code, sector and current price in the prompt."""
    return (
        f"{COMMENTARY_PERSONA} Current stock: {instrument.name} ({instrument.code}), "
        f"sector: {instrument.sector}, current price: {instrument.price:.2f}.\n"
        f"{COMMENTARY_INSTRUCTION}"
    )
