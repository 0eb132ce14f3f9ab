"""
SocialVault Backend

Backup job orchestration and lifecycle for social-media account exports.

Package Structure:
==================
    socialvault/
    ├── api/        ← FastAPI application
    ├── worker/     ← Queue consumer (events + scheduled triggers)
    ├── shared/     ← Shared code (models, repositories, services, adapters)
    └── config/     ← Configuration

Running the Application:
========================
    # API Server
    uvicorn socialvault.api.main:app --reload

    # Worker
    python -m socialvault.worker.main
"""
