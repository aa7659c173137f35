def reject_null(value):
    """
    Partial-update fields may be omitted, but an explicit null is refused
    for columns that are NOT NULL. Call from a field_validator.
    """
    if value is None:
        raise ValueError("tidak boleh null")
    return value
