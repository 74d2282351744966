# Pydantic schemas


def reject_null(value):
    """PATCH fields backed by NOT NULL columns may be omitted but not cleared"""
    if value is None:
        raise ValueError("cannot be null")
    return value
