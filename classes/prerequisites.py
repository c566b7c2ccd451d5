"""Resolution of untyped prerequisite references.

A prerequisite list mixes track, module and lesson references with nothing to
tell them apart. Each reference is tried against the interpretations in
:data:`PREREQUISITE_RESOLUTION_ORDER` and the first one that is satisfied wins.
"""

import logging
from typing import NamedTuple

from classes.catalog_store import CatalogStore
from classes.matching_context import find_lesson_progress, find_module_progress_by_identifier
from utils.aliases import build_module_aliases
from utils.helpers import is_object_id
from utils.identifiers import normalize_identifier
from utils.statuses import COMPLETED

logger = logging.getLogger(__name__)

# track -> module primary key (24-hex references only) -> module code/alias -> lesson
PREREQUISITE_RESOLUTION_ORDER = ("track", "module_key", "module_code", "lesson")


class PrerequisiteCheck(NamedTuple):
    prerequisite: str
    satisfied: bool
    interpretation: str = None


class PrerequisiteResolver:
    def __init__(self, progress, track_context, catalog=CatalogStore):
        self.progress = progress
        self.track_context = track_context
        self.catalog = catalog
        self.checks = []
        self._module_alias_map = None

    def check(self, prerequisite):
        for interpretation in PREREQUISITE_RESOLUTION_ORDER:
            handler = getattr(self, f"_as_{interpretation}")
            if handler(prerequisite):
                result = PrerequisiteCheck(str(prerequisite), True, interpretation)
                logger.debug("Prerequisite %r satisfied as %s", prerequisite, interpretation)
                break
        else:
            result = PrerequisiteCheck(str(prerequisite), False)
            logger.debug("Prerequisite %r not satisfied under any interpretation", prerequisite)
        self.checks.append(result)
        return result

    def unmet(self, prerequisites):
        """Prerequisites from ``prerequisites`` that no interpretation satisfies."""
        return [check.prerequisite for check in map(self.check, prerequisites or []) if not check.satisfied]

    def _as_track(self, prerequisite):
        track_progress = self.track_context.resolve_progress(prerequisite).track_progress
        return track_progress is not None and track_progress.status == COMPLETED

    def _as_module_key(self, prerequisite):
        if not is_object_id(prerequisite):
            return False
        return self._module_completed(self.catalog.find_module_by_id(prerequisite))

    def _as_module_code(self, prerequisite):
        alias_map = self._modules_by_alias()
        for variant in normalize_identifier(prerequisite, "module"):
            if variant in alias_map:
                return self._module_completed(alias_map[variant])
        return False

    def _as_lesson(self, prerequisite):
        lesson = self.catalog.find_lesson_by_identifier(prerequisite, active_only=False)
        reference = lesson if lesson is not None else str(prerequisite)
        for track_progress in self.progress.tracks_progress:
            for module_progress in track_progress.modules_progress:
                lesson_progress = find_lesson_progress(module_progress, reference)
                if lesson_progress is not None and lesson_progress.status == COMPLETED:
                    return True
        return False

    def _module_completed(self, module):
        if module is None:
            return False
        for track_progress in self.progress.tracks_progress:
            module_progress = find_module_progress_by_identifier(track_progress, module)
            if module_progress is not None and module_progress.status == COMPLETED:
                return True
        return False

    def _modules_by_alias(self):
        if self._module_alias_map is None:
            self._module_alias_map = {}
            for module in self.catalog.find_active_modules():
                for alias in build_module_aliases(module):
                    self._module_alias_map.setdefault(alias, module)
        return self._module_alias_map
