"""
Static route/sitemap index used to validate navigation targets.
"""

import logging
from collections.abc import Iterable
from collections.abc import Mapping
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_ROUTES: dict[str, str] = {
    "/": "Home",
    "/learning-paths": "Learning Paths",
    "/my-path": "My Path",
    "/channels": "Channels",
    "/certifications": "Certifications",
    "/coding": "Coding Challenges",
    "/tests": "Practice Tests",
    "/voice-interview": "Voice Interview",
    "/review": "Spaced Repetition Review",
    "/training": "Training",
    "/badges": "Badges",
    "/stats": "Stats",
    "/channel/system-design": "System Design",
    "/channel/algorithms": "Algorithms",
    "/channel/data-structures": "Data Structures",
    "/channel/dynamic-programming": "Dynamic Programming",
    "/channel/frontend": "Frontend",
    "/channel/backend": "Backend",
    "/channel/database": "Database",
    "/channel/aws": "AWS",
    "/channel/kubernetes": "Kubernetes",
    "/channel/devops": "DevOps",
    "/channel/machine-learning": "Machine Learning",
    "/channel/generative-ai": "Generative AI",
    "/channel/python": "Python",
    "/channel/security": "Security",
    "/channel/behavioral": "Behavioral",
    "/certification/aws-saa": "AWS Solutions Architect Associate",
    "/certification/aws-sap": "AWS Solutions Architect Professional",
    "/certification/cka": "Kubernetes Administrator",
    "/certification/ckad": "Kubernetes Developer",
    "/certification/terraform-associate": "Terraform Associate",
    "/certification/gcp-cloud-engineer": "GCP Cloud Engineer",
    "/certification/azure-fundamentals": "Azure Fundamentals",
}


def normalize_path(path: str) -> str:
    path = path.strip().split("?", 1)[0].split("#", 1)[0]
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/")
    return path or "/"


class RouteIndex:
    """Lookup of the routes that actually exist in the application."""

    def __init__(self, routes: Mapping[str, str]):
        self._routes = {normalize_path(p): title for p, title in routes.items()}

    @classmethod
    def default(cls) -> "RouteIndex":
        return cls(DEFAULT_ROUTES)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and normalize_path(path) in self._routes

    def __len__(self) -> int:
        return len(self._routes)

    def items(self) -> Iterable[tuple[str, str]]:
        return self._routes.items()

    def title(self, path: str) -> Optional[str]:
        return self._routes.get(normalize_path(path))

    def resolve(self, path: str) -> Optional[str]:
        """
        Resolve a candidate navigation target to an existing route.

        Unknown paths fall back to their nearest existing parent, e.g.
        ``/learning-paths/devops`` resolves to ``/learning-paths``.

        Args:
            path: Candidate route

        Returns:
            str: Existing route, or None when nothing but the root would match
        """
        candidate = normalize_path(path)
        if candidate in self._routes:
            return candidate

        segments = candidate.strip("/").split("/")
        while len(segments) > 1:
            segments.pop()
            parent = "/" + "/".join(segments)
            if parent in self._routes:
                logger.info(f"Route {candidate} not found, using parent {parent}")
                return parent
        return None
