from . import crud_response, crud_survey

__all__ = ["crud_response", "crud_survey"]
