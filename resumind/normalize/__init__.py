from .feedback import extract_json_from_text, feedback_to_payload, normalize_feedback, recover_object

__all__ = [
    "extract_json_from_text",
    "feedback_to_payload",
    "normalize_feedback",
    "recover_object",
]
