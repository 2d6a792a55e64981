"""Project discovery through Resource Manager, and the interactive ADC login."""
import logging
import subprocess
from typing import Callable, List

from google.cloud import resourcemanager_v3

from .errors import UnknownError
from .models import Project

logger = logging.getLogger(__name__)

ADC_LOGIN_COMMAND = ["gcloud", "auth", "application-default", "login"]


def list_projects(client: resourcemanager_v3.ProjectsClient) -> List[Project]:
    """
    List the projects visible to Application Default Credentials.

    An empty search query matches every project the caller can see. Errors
    from the API propagate unclassified; the caller owns retry and
    classification.

    Returns:
        Projects in the order the API returns them (all pages)
    """
    projects = [
        Project(project_id=project.project_id, display_name=project.display_name)
        for project in client.search_projects(request={})
        if project.project_id
    ]
    logger.debug(f"Resource Manager returned {len(projects)} projects")
    return projects


def run_adc_login(runner: Callable = subprocess.run) -> bool:
    """
    Run the interactive Application Default Credentials login.

    Must be called while the terminal is released by the TUI.

    Returns:
        True if gcloud reported success
    """
    try:
        result = runner(ADC_LOGIN_COMMAND, check=False)
    except FileNotFoundError:
        raise UnknownError("gcloud CLI not found. Install the Google Cloud SDK to authenticate.")
    logger.info(f"gcloud auth application-default login exited with {result.returncode}")
    return result.returncode == 0
