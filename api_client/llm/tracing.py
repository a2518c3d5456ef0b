from typing import Dict, Any


def build_trace_entry(
    model_name: str,
    instrument_id: str,
    prompt: str,
    raw_response: str | None,
    outcome: str,
) -> Dict[str, Any]:
    return {
        "model_name": model_name,
        "instrument_id": instrument_id,
        "prompt": prompt,
        "raw_response": raw_response,
        "outcome": outcome,
    }
