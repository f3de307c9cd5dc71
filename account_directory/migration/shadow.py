"""
Shadow operations against the target store.

A shadow operation runs after the authoritative result is known. Its
outcome is only observed: failures are counted and logged, results are
classified against the legacy result, and nothing ever reaches the caller.
"""

import inspect
import logging
from types import FrameType
from typing import Any, Callable, Optional, TypeVar
from uuid import UUID

from ..metrics import Metrics
from .policy import DynamicConfiguration, MigrationPolicy

logger = logging.getLogger(__name__)

PROJECT_NAMESPACE = 'account_directory'
MAX_CALL_CHAIN_DEPTH = 24
COMPARE_MODULE = f'{PROJECT_NAMESPACE}.migration.compare'

T = TypeVar('T')


def _in_project(module: str) -> bool:
    return module == PROJECT_NAMESPACE \
        or module.startswith(f'{PROJECT_NAMESPACE}.')


def _is_comparison(module: str, function: str) -> bool:
    if module == COMPARE_MODULE:
        return True
    return module == __name__ and 'compare' in function


def _owner(frame: FrameType, module: str) -> str:
    local_vars = frame.f_locals
    if 'self' in local_vars:
        return type(local_vars['self']).__name__
    if 'cls' in local_vars and isinstance(local_vars['cls'], type):
        return local_vars['cls'].__name__
    return module.rsplit('.', 1)[-1]


def abbreviated_call_chain(frame: Optional[FrameType] = None,
                           depth: int = MAX_CALL_CHAIN_DEPTH) -> str:
    """
    Describe the project frames on the stack, innermost first.

    Frames outside of the package and the comparison frames are left out.
    Each frame is rendered as ``Class:method`` (or ``module:function``) and
    the frames are joined with ``" -> "``.
    """
    if frame is None:
        current = inspect.currentframe()
        frame = current.f_back if current is not None else None
    links = []
    while frame is not None and len(links) < depth:
        module = frame.f_globals.get('__name__', '')
        function = frame.f_code.co_name
        if _in_project(module) and not _is_comparison(module, function):
            links.append(f'{_owner(frame, module)}:{function}')
        frame = frame.f_back
    return ' -> '.join(links)


class ShadowRunner(object):
    """Runs operations against the target store without affecting callers."""

    def __init__(self, policy: MigrationPolicy, metrics: Metrics) -> None:
        self.policy = policy
        self.metrics = metrics

    def run(self, op: Callable[[], T], account_uuid: Optional[UUID],
            legacy_result: T,
            classifier: Callable[[T, T], Optional[str]], action: str,
            configuration: DynamicConfiguration) -> None:
        """
        Run ``op`` against the target store and compare its result.

        Parameters
        ----------
        op : callable
            Performs the operation against the target store.
        account_uuid : :class:`UUID` or None
            Account the operation concerns. If given, the operation only
            runs for accounts enrolled in the migration experiment.
        legacy_result : object
            Result of the same operation against the legacy store.
        classifier : callable
            Returns a mismatch tag for (legacy result, target result), or
            ``None`` if they agree.
        action : str
            Name of the operation, used to tag metrics.
        configuration : :class:`.DynamicConfiguration`
            Snapshot governing the calling operation.

        """
        if account_uuid is not None \
                and not self.policy.is_enrolled(configuration, account_uuid):
            return
        try:
            target_result = op()
            self._compare(legacy_result, target_result, classifier, action,
                          account_uuid, configuration)
        except Exception as e:
            logger.error('Error running %s in target store: %s', action, e,
                         exc_info=True)
            self.metrics.record_migration_error(action)

    def _compare(self, legacy_result: Any, target_result: Any,
                 classifier: Callable[[Any, Any], Optional[str]],
                 action: str, account_uuid: Optional[UUID],
                 configuration: DynamicConfiguration) -> None:
        self.metrics.record_comparison()
        mismatch = classifier(legacy_result, target_result)
        if mismatch is None:
            return
        description = f'{action}:{mismatch}'
        self.metrics.record_mismatch(description)

        if account_uuid is not None \
                and configuration.migration.is_log_mismatches:
            logger.info('Mismatched account data', extra={
                'type': description,
                'uuid': str(account_uuid),
                'callChain': abbreviated_call_chain()
            })
