"""Wiring: store, engine, curator registry and convergence driver from Settings."""

import logging
from dataclasses import dataclass

from kith.application import (
    ConvergenceDriver,
    CuratorRegistry,
    DocumentStore,
    RelationshipSyncEngine,
    VCardSink,
)
from kith.application.rules import (
    ContactToMetadataCurator,
    MetadataToContactCurator,
    NamespaceUpgradeCurator,
    PhoneNormalizeCurator,
    RelatedListCurator,
    RelatedMetadataCurator,
    RelatedOtherCurator,
    UidCurator,
    VCardWriteBackCurator,
)
from kith.config import Settings
from kith.domain import GenderResolver
from kith.domain.gender import DEFAULT_VOCABULARY
from kith.infrastructure import (
    FolderVCardSink,
    InMemoryVCardSink,
    MarkdownFolderStore,
    phone_normalizer,
)

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    store: DocumentStore
    folder: str
    engine: RelationshipSyncEngine
    registry: CuratorRegistry
    driver: ConvergenceDriver
    sink: VCardSink


def build_registry(
    engine: RelationshipSyncEngine,
    sink: VCardSink,
    settings: Settings,
) -> CuratorRegistry:
    registry = CuratorRegistry(settings.curators)
    normalize = phone_normalizer(settings.default_region)
    for curator in (
        UidCurator(engine),
        PhoneNormalizeCurator(engine, normalize),
        RelatedListCurator(engine),
        RelatedOtherCurator(engine),
        NamespaceUpgradeCurator(engine),
        ContactToMetadataCurator(engine, normalize),
        MetadataToContactCurator(engine, normalize),
        RelatedMetadataCurator(engine),
        VCardWriteBackCurator(engine, sink),
    ):
        registry.register(curator)
    unknown = set(settings.curators) - {
        key for s in registry.settings() for key in (s.name, s.setting_name)
    }
    for name in sorted(unknown):
        logger.warning("Ignoring setting for unknown curator '%s'", name)
    return registry


def build_pipeline(
    settings: Settings,
    store: DocumentStore | None = None,
    folder: str = "",
    sink: VCardSink | None = None,
) -> Pipeline:
    """Assemble a pipeline. Without a store, the contacts folder is opened as Markdown."""
    if store is None:
        store = MarkdownFolderStore(settings.contacts_folder)
    if sink is None:
        sink = FolderVCardSink(settings.vcard_folder) if settings.vcard_folder else InMemoryVCardSink()
    resolver = GenderResolver({**DEFAULT_VOCABULARY, **settings.relationship_terms})
    engine = RelationshipSyncEngine(store, folder, resolver=resolver)
    registry = build_registry(engine, sink, settings)
    driver = ConvergenceDriver(store, folder, registry, engine)
    logger.info(
        "Pipeline ready: %d curator(s), %d enabled",
        len(registry.names()),
        sum(1 for s in registry.settings() if s.enabled),
    )
    return Pipeline(store, folder, engine, registry, driver, sink)
