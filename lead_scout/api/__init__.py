"""
Lead Scout API Module

FastAPI backend providing endpoints for:
- Cron-driven scout runs and (deprecated) batch ingestion
- Database webhooks that classify and notify leads
- On-demand reply drafts and test notifications
"""
