"""
Serverless entry point for the Helpdesk Assistant API
"""
import os

# Set environment variables for serverless
os.environ.setdefault("ENVIRONMENT", "production")
os.environ.setdefault("RUNTIME_CONFIG_PATH", "/tmp/runtime_config.yaml")

from mangum import Mangum

from helpdesk_assistant.config import settings
from helpdesk_assistant.infrastructure.database import init_database
from helpdesk_assistant.infrastructure.llm import build_provider_clients
from helpdesk_assistant.main import app
from helpdesk_assistant.shared.infrastructure.logging import setup_logging

# Lifespan is disabled below, so do the startup wiring here
setup_logging(settings.log_level, settings.environment)
init_database()
app.state.settings = settings
app.state.providers = build_provider_clients(settings)

# Lambda handler for ASGI app
handler = Mangum(app, lifespan="off")
