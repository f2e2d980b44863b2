"""Payload helpers for Allure docker service responses in tests."""

from typing import Any

SERVICE_URL = "http://allure:5050"


def project(*, project_id: str = "default") -> dict[str, Any]:
    """Create the response of GET /projects/{id}."""
    return {
        "data": {
            "project": {
                "id": project_id,
                "reports": [],
                "reports_id": [],
            }
        },
        "meta_data": {"message": "Project successfully obtained"},
    }


def project_not_found(*, project_id: str = "default") -> dict[str, Any]:
    """Create the 404 response of GET /projects/{id}."""
    return {"meta_data": {"message": f"project_id '{project_id}' not found"}}


def send_results(*, project_id: str = "default", count: int = 1) -> dict[str, Any]:
    """Create the response of POST /send-results."""
    return {
        "data": {
            "current_files_count": count,
            "processed_files": [],
            "sent_files_count": count,
        },
        "meta_data": {
            "message": f"Results successfully sent for project_id '{project_id}'"
        },
    }


def generate_report(*, project_id: str = "default") -> dict[str, Any]:
    """Create the response of GET /generate-report."""
    report_url = f"{SERVICE_URL}/projects/{project_id}/reports/1/index.html"
    return {
        "data": {"report_url": report_url},
        "meta_data": {
            "message": f"Report successfully generated for project_id '{project_id}'"
        },
    }
