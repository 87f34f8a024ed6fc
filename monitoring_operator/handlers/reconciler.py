"""Reconciliation logic for MonitoringInstance resources."""
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError

from .. import metrics
from ..builder import build_desired_state
from ..clients.cluster import ClusterClient
from ..constants import CONTROLLER_NAME
from ..engine.applier import Applier, ApplyReport
from ..engine.controller import ReconcileResult
from ..errors import ConflictError, NotFoundError, OperatorError, ReadinessTimeout, SpecError
from ..models.resources import ResourceGroup
from ..models.spec import MonitoringInstance
from ..models.status import MonitoringInstanceStatus, Outcome, next_phase
from ..readiness import ReadinessGate
from ..utils.config import Config, SettingsStore
from ..utils.helpers import search_endpoint, split_key


class MonitoringInstanceReconciler:
    """Handles reconciliation of MonitoringInstance resources."""

    def __init__(self, cluster: ClusterClient, config: Config, settings: SettingsStore,
                 gate: Optional[ReadinessGate] = None, applier: Optional[Applier] = None):
        self.cluster = cluster
        self.config = config
        self.settings = settings
        self.gate = gate or ReadinessGate()
        self.applier = applier or Applier(cluster)
        self.images = config.images()

    def reconcile(self, key: str) -> ReconcileResult:
        """
        Run one pass for the instance identified by `key`.

        Builds the desired state, applies it group by group (waiting on the
        search cluster before groups that depend on it), prunes leftovers
        and records the outcome in status. Errors are recorded and then
        raised so that the caller retries with backoff; conflicts are
        raised without touching status.
        """
        namespace, name = split_key(key)
        log = logger.bind(controller=CONTROLLER_NAME, namespace=namespace, name=name)

        try:
            body = self.cluster.get_instance(namespace, name)
        except NotFoundError:
            log.info(f"MonitoringInstance {key} no longer exists")
            return ReconcileResult(gone=True)

        meta = body.get('metadata') or {}
        previous = MonitoringInstanceStatus.from_body(body)
        status = previous.model_copy(deep=True)

        if meta.get('deletionTimestamp'):
            status.phase = next_phase(previous.phase, Outcome.TERMINATING)
            self._write_status(namespace, name, previous, status, log)
            return ReconcileResult(phase=status.phase)

        if (body.get('spec') or {}).get('lock'):
            log.info(f"MonitoringInstance {key} is locked, skipping")
            return ReconcileResult(phase=previous.phase)

        settings = self.settings.get()
        status.observedGeneration = meta.get('generation')
        status.envName = settings.envName
        try:
            instance = MonitoringInstance.from_body(body)
            desired = build_desired_state(instance, settings, self.images, self.config.search_target_version)
        except (ValidationError, SpecError) as e:
            log.error(f"Invalid spec for {key}: {e}")
            status.phase = next_phase(previous.phase, Outcome.SPEC_INVALID)
            status.set_condition("Ready", False, "SpecInvalid", str(e))
            self._write_status(namespace, name, previous, status, log)
            raise SpecError(f"invalid spec: {e}") from e

        waiting: Optional[str] = None
        try:
            report, waiting = self._apply(instance, desired.groups, status, log)
        except ConflictError:
            raise
        except OperatorError as e:
            status.phase = next_phase(previous.phase, Outcome.FAILED)
            status.set_condition("Ready", False, "ReconcileFailed", str(e))
            self._write_status(namespace, name, previous, status, log)
            raise

        status.hash = instance.spec_hash()
        if waiting:
            status.phase = next_phase(previous.phase, Outcome.WAITING)
            status.set_condition("Ready", False, "WaitingForDependencies", waiting)
        else:
            status.phase = next_phase(previous.phase, Outcome.SUCCESS)
            status.set_condition("Ready", True, "Reconciled", "All components are applied")
        self._write_status(namespace, name, previous, status, log)

        if report.writes:
            log.info(f"Reconciled {key}: {len(report.created)} created, {len(report.updated)} updated, "
                     f"{len(report.deleted)} deleted")
        return ReconcileResult(
            requeue_after=self.config.waiting_requeue_seconds if waiting else None,
            phase=status.phase,
        )

    def _apply(self, instance: MonitoringInstance, groups: List[ResourceGroup],
               status: MonitoringInstanceStatus, log):
        report = ApplyReport()
        applied: List[ResourceGroup] = []
        gate_reason: Optional[str] = None
        gate_checked = False

        for group in groups:
            if group.requires_ready and group.resources:
                if not gate_checked:
                    gate_reason = self._wait_for_search(instance, log)
                    gate_checked = True
                if gate_reason is not None:
                    status.set_condition(group.component, False, "WaitingForDependencies", gate_reason)
                    continue
            report.merge(self.applier.apply_group(group))
            applied.append(group)
            if group.resources:
                status.set_condition(group.component, True, "Applied", f"{len(group.resources)} resource(s) applied")
            else:
                status.remove_condition(group.component)

        report.merge(self.applier.prune(instance, applied))
        return report, gate_reason

    def _wait_for_search(self, instance: MonitoringInstance, log) -> Optional[str]:
        """Run the readiness gate; returns why the search cluster is not ready, or None."""
        url = self.config.search_endpoint_override or search_endpoint(instance.name, instance.namespace)
        version = instance.spec.opensearch.version or self.config.search_target_version
        required = instance.spec.opensearch.required_data_nodes()
        try:
            self.gate.wait(url, version, required, self.config.readiness_timeout_seconds)
        except ReadinessTimeout as e:
            log.info(f"Search cluster not ready: {e}")
            metrics.readiness_checks_total.labels(result="timeout").inc()
            return e.reason or str(e)
        metrics.readiness_checks_total.labels(result="ready").inc()
        return None

    def _write_status(self, namespace: str, name: str, previous: MonitoringInstanceStatus,
                      status: MonitoringInstanceStatus, log) -> None:
        """Patch status only when it changed."""
        patch = status.to_patch()
        if patch == previous.to_patch():
            return
        try:
            self.cluster.patch_instance_status(namespace, name, patch)
        except NotFoundError:
            log.info(f"MonitoringInstance {namespace}/{name} disappeared before its status was written")
            return
        log.debug(f"Status of {namespace}/{name} is now {status.phase.value if status.phase else None}")