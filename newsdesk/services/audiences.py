"""Built-in audience categories and specializations.

Audiences are organised in two levels: parent categories (``academic``,
``business``) and the specializations below them. Content generation always
works with specialization ids; category and legacy ids are expanded.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable

from newsdesk.schemas.audience import (
    AudienceCategory,
    AudienceConfig,
    AudienceSpecialization,
)

logger = logging.getLogger(__name__)

ALL_SOURCE_PREFERENCES = ["arxiv", "hackernews", "github", "reddit", "dev", "gdelt"]

GENERIC_TOPIC_TITLES = [
    "Create a Custom AI Assistant Using Claude API and React",
    "Build an Automated Data Pipeline with Python and Airflow",
    "Implement a RAG System with LangChain and Vector Databases",
]

DEFAULT_CATEGORIES: tuple[AudienceCategory, ...] = (
    AudienceCategory(
        id="academic",
        name="Academic",
        description="Researchers and faculty applying AI to scholarly work.",
        children=["forensic-anthropology", "computational-archaeology"],
    ),
    AudienceCategory(
        id="business",
        name="Business",
        description="Operators and analysts applying AI to business processes.",
        children=["business-administration", "business-intelligence"],
    ),
)

DEFAULT_SPECIALIZATIONS: tuple[AudienceSpecialization, ...] = (
    AudienceSpecialization(
        id="forensic-anthropology",
        parent_id="academic",
        name="Forensic Anthropology",
        description=(
            "Forensic anthropology professors and researchers specializing in skeletal "
            "analysis, trauma interpretation, taphonomy, and mass disaster victim "
            "identification using AI for morphometric analysis, age estimation, sex "
            "determination, ancestry classification, and biological profile construction."
        ),
        domain_examples=[
            "skeletal analysis AI for bone measurements",
            "trauma pattern recognition from fractures",
            "mass fatality incident response tools",
            "age/sex/ancestry estimation algorithms",
            "commingled remains sorting",
            "postmortem interval estimation",
        ],
        example_topics=[
            "Build a Skeletal Analysis Pipeline Using Claude Vision API and Python",
            "Configure Automated Trauma Pattern Recognition System with TensorFlow and Medical Imaging",
            "Automate Age Estimation from Skeletal Features Using Deep Learning",
            "Create a Commingled Remains Sorting Tool with Claude and Morphometric Analysis",
        ],
        source_preferences=["arxiv", "github", "dev"],
    ),
    AudienceSpecialization(
        id="computational-archaeology",
        parent_id="academic",
        name="Computational Archaeology",
        description=(
            "Digital and computational archaeology researchers applying LiDAR processing, "
            "photogrammetry, 3D site reconstruction, geospatial analysis, and remote sensing "
            "to site discovery, artifact documentation, and cultural heritage preservation."
        ),
        domain_examples=[
            "LiDAR site discovery and feature extraction",
            "photogrammetry pipelines for artifact digitization",
            "artifact classification with computer vision",
            "geospatial analysis with GIS tools",
            "remote sensing for landscape archaeology",
            "ceramic typology automation",
        ],
        example_topics=[
            "Deploy LiDAR Point Cloud Processing Pipeline Using CloudCompare and Python for Site Discovery",
            "Create a Photogrammetry Workflow for Artifact Documentation with Meshroom and AliceVision",
            "Build an Artifact Classification System Using Claude Vision and Transfer Learning",
            "Automate GIS Analysis for Archaeological Surveys with QGIS and Python",
        ],
        source_preferences=["arxiv", "github", "dev"],
    ),
    AudienceSpecialization(
        id="business-administration",
        parent_id="business",
        name="Business Administration",
        description=(
            "Business administrators, office managers, and operations professionals seeking "
            "AI-powered workflow automation, document processing, meeting transcription, "
            "and robotic process automation to reduce manual overhead."
        ),
        domain_examples=[
            "workflow orchestration with n8n and Zapier",
            "document processing automation for invoices and contracts",
            "meeting intelligence and transcription",
            "RPA implementation with UiPath and Power Automate",
            "email triage and auto-response",
            "expense report processing",
        ],
        example_topics=[
            "Automate Business Workflows Using n8n Cloud and Claude Integration",
            "Configure Document Intelligence Workflow Using Claude 3.5 and LangChain",
            "Automate Meeting Notes with Whisper API and Claude Summarization",
            "Build an Invoice Processing System with Claude Vision and Zapier",
        ],
        source_preferences=["hackernews", "reddit", "dev"],
    ),
    AudienceSpecialization(
        id="business-intelligence",
        parent_id="business",
        name="Business Intelligence & Analytics",
        description=(
            "Business analytics, logistics, and data professionals using predictive "
            "analytics, demand forecasting, supply chain optimization, and ML-driven "
            "insights, including dashboard development, KPI tracking, and data visualization."
        ),
        domain_examples=[
            "supply chain optimization models",
            "demand forecasting with time series",
            "inventory management automation",
            "predictive analytics dashboards",
            "customer segmentation analysis",
            "churn prediction models",
        ],
        example_topics=[
            "Automate Supply Chain Forecasting with Prophet, Pandas, and Streamlit",
            "Optimize Inventory Predictions Using XGBoost and Historical Sales Data",
            "Build a Real-Time Analytics Dashboard with Streamlit and Plotly",
            "Create a Customer Churn Prediction Model with Scikit-learn and Claude Analysis",
        ],
        source_preferences=["hackernews", "reddit", "github", "dev"],
    ),
)

LEGACY_AUDIENCE_IDS: dict[str, list[str]] = {
    "academics": ["forensic-anthropology", "computational-archaeology"],
    "analysts": ["business-intelligence"],
}


class AudienceDirectory:
    """Read-only view over audience categories and specializations."""

    def __init__(
        self,
        categories: Iterable[AudienceCategory],
        specializations: Iterable[AudienceSpecialization],
        legacy_ids: dict[str, list[str]] | None = None,
    ) -> None:
        self._categories = {category.id: category for category in categories}
        self._specializations = {spec.id: spec for spec in specializations}
        self._legacy_ids = dict(legacy_ids or {})

    def categories(self) -> list[AudienceCategory]:
        return list(self._categories.values())

    def get(self, audience_id: str) -> AudienceSpecialization | None:
        return self._specializations.get(audience_id)

    def all_specializations(self) -> list[AudienceSpecialization]:
        return list(self._specializations.values())

    def category_of(self, audience_id: str) -> str | None:
        """Return the parent category id of a built-in audience, or None."""
        spec = self._specializations.get(audience_id)
        return spec.parent_id if spec else None

    def category_name(self, category_id: str) -> str:
        category = self._categories.get(category_id)
        return category.name if category else category_id

    def specializations_for_category(self, category_id: str) -> list[AudienceSpecialization]:
        category = self._categories.get(category_id)
        if category is None:
            return []
        return [
            self._specializations[child]
            for child in category.children
            if child in self._specializations
        ]

    def resolve_ids(self, ids: Iterable[str]) -> list[str]:
        """Expand legacy and category ids into unique specialization ids."""
        resolved: list[str] = []
        for audience_id in ids:
            if audience_id in self._legacy_ids:
                expanded = self._legacy_ids[audience_id]
            elif audience_id in self._categories:
                expanded = self._categories[audience_id].children
            elif audience_id in self._specializations:
                expanded = [audience_id]
            else:
                logger.warning("Unknown audience id", extra={"audience_id": audience_id})
                expanded = []
            for spec_id in expanded:
                if spec_id not in resolved:
                    resolved.append(spec_id)
        return resolved

    def audience_configs(self, ids: Iterable[str]) -> list[AudienceConfig]:
        return [self._specializations[i].to_audience_config() for i in self.resolve_ids(ids)]

    def _resolve_specs(self, ids: Iterable[str]) -> list[AudienceSpecialization]:
        return [self._specializations[i] for i in self.resolve_ids(ids)]

    def description_for(self, ids: Iterable[str]) -> str:
        specs = self._resolve_specs(ids) or self.all_specializations()
        return "\n".join(f"- {spec.description}" for spec in specs)

    def domain_examples_for(self, ids: Iterable[str]) -> str:
        specs = self._resolve_specs(ids) or self.all_specializations()
        return "\n".join(
            f"- {spec.name}: {', '.join(spec.domain_examples)}" for spec in specs
        )

    def topic_titles_for(self, ids: Iterable[str], limit: int = 10) -> list[str]:
        """Example titles for the given audiences, padded with generic ones."""
        specs = self._resolve_specs(ids)
        if not specs:
            return [title for spec in self.all_specializations() for title in spec.example_topics[:3]]
        titles = [title for spec in specs for title in spec.example_topics]
        for generic in GENERIC_TOPIC_TITLES:
            if len(titles) >= limit:
                break
            titles.append(generic)
        return titles[:limit]

    def balanced_topic_titles(
        self,
        ids: Iterable[str],
        titles_per_audience: int = 3,
        rng: random.Random | None = None,
    ) -> list[str]:
        """Take the same number of example titles from each audience, shuffled."""
        rng = rng or random.Random()
        specs = self._resolve_specs(ids) or self.all_specializations()
        specs = list(specs)
        rng.shuffle(specs)
        titles = [title for spec in specs for title in spec.example_topics[:titles_per_audience]]
        rng.shuffle(titles)
        return titles

    def source_preferences_for(self, ids: Iterable[str]) -> list[str]:
        specs = self._resolve_specs(ids)
        if not specs:
            return list(ALL_SOURCE_PREFERENCES)
        preferences: list[str] = []
        for spec in specs:
            for preference in spec.source_preferences:
                if preference not in preferences:
                    preferences.append(preference)
        return preferences


def default_audience_directory() -> AudienceDirectory:
    """Build the directory of built-in audiences."""
    return AudienceDirectory(DEFAULT_CATEGORIES, DEFAULT_SPECIALIZATIONS, LEGACY_AUDIENCE_IDS)
