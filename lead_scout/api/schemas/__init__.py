"""Request and response models for the Lead Scout API."""
