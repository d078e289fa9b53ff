"""
Core domain logic: models, match keys, canonical selection and field mapping.
"""
