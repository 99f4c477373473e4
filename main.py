"""
Workflow Simulator API entry point
"""
import logging

import uvicorn
from dotenv import load_dotenv

from workflow_simulator.api import create_app
from workflow_simulator.config import load_settings
from workflow_simulator.runner import SimulationRunner

# Load environment variables
load_dotenv()

settings = load_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = create_app(SimulationRunner.from_settings(settings))


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower()
    )
