# File: ctrlgen/introspection.py
"""
ctrlgen - Schema Introspector
===============================
Front door between the pipeline and a ``StructuralMetadataSource``.

``SchemaIntrospector.describe`` forwards to the configured source and, for
remote sources, bounds the call with a caller-supplied timeout.
``describe_or_degrade`` is what the orchestrator uses: when the entity does
not exist yet (``EntityNotFound``) or its metadata cannot be read
(``IntrospectionError``), it returns a *degraded* descriptor with no fields
or relationships together with a warning, so generation can still target an
entity that has not been created.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import List, Optional, Tuple

from ctrlgen.errors import EntityNotFound, IntrospectionError, StageTimeout
from ctrlgen.models import EntityDescriptor, Stage
from ctrlgen.sources import StructuralMetadataSource
from ctrlgen.utils import entity_basename

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.introspection")


def degraded_descriptor(identifier: str) -> EntityDescriptor:
    """Descriptor with naming only: no fields, no relationships, no behaviours."""
    return EntityDescriptor(name=entity_basename(identifier), degraded=True)


class SchemaIntrospector:
    """
    Resolve entity identifiers to ``EntityDescriptor`` objects.

    Args:
        source: The metadata backend.  ``None`` means "no structural source
            configured"; every lookup then raises ``EntityNotFound``.
    """

    def __init__(self, source: Optional[StructuralMetadataSource] = None) -> None:
        self._source: Optional[StructuralMetadataSource] = source

    @property
    def source(self) -> Optional[StructuralMetadataSource]:
        return self._source

    def describe(
        self, identifier: str, timeout: Optional[float] = None
    ) -> EntityDescriptor:
        """
        Describe *identifier* through the configured source.

        Raises:
            EntityNotFound: No source, or the source does not know the entity.
            IntrospectionError: The source could not be read.
            StageTimeout: A remote source did not answer within *timeout*.
        """
        if self._source is None:
            raise EntityNotFound(identifier, stage=Stage.INTROSPECTING)

        if timeout is None or not self._source.is_remote:
            return self._source.describe(identifier)

        executor: ThreadPoolExecutor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="ctrlgen-introspect"
        )
        future: Future[EntityDescriptor] = executor.submit(
            self._source.describe, identifier
        )
        try:
            return future.result(timeout=timeout)
        except FutureTimeout as exc:
            logger.error(
                "Metadata read for '%s' exceeded %.2fs.", identifier, timeout
            )
            raise StageTimeout(
                f"Describing '{identifier}' via {self._source!r}",
                timeout,
                stage=Stage.INTROSPECTING,
            ) from exc
        finally:
            # Stop waiting; a stuck worker thread is abandoned, not killed.
            executor.shutdown(wait=False, cancel_futures=True)

    def describe_or_degrade(
        self, identifier: str, timeout: Optional[float] = None
    ) -> Tuple[EntityDescriptor, Optional[str]]:
        """
        Like :meth:`describe` but never fails on a missing or unreadable entity.

        Returns:
            ``(descriptor, warning)``; *warning* is ``None`` unless the
            descriptor is degraded.  ``StageTimeout`` still propagates.
        """
        try:
            return self.describe(identifier, timeout=timeout), None
        except (EntityNotFound, IntrospectionError) as exc:
            warning: str = (
                f"{exc.message} Generating '{entity_basename(identifier)}' "
                f"from a degraded descriptor (no fields or relationships)."
            )
            logger.warning(warning)
            return degraded_descriptor(identifier), warning

    def __repr__(self) -> str:
        return f"<SchemaIntrospector source={self._source!r}>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "SchemaIntrospector",
    "degraded_descriptor",
]

logger.debug("ctrlgen.introspection loaded — %d public symbols.", len(__all__))
