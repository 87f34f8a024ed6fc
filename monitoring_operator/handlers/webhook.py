"""Admission webhook validating MonitoringInstance specs."""
import kopf
from loguru import logger
from pydantic import ValidationError

from ..constants import GROUP, PLURAL, VERSION
from ..models.spec import MonitoringInstanceSpec


def describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get('loc', ())) or "spec"
        parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts)


@kopf.on.validate(GROUP, VERSION, PLURAL, id='validate-spec')
def validate_spec(spec, name, namespace, **kwargs):
    """Reject instances whose spec cannot be rendered."""
    try:
        MonitoringInstanceSpec.model_validate(dict(spec or {}))
    except ValidationError as e:
        message = describe(e)
        logger.bind(webhook="validate", kind="MonitoringInstance", resource=f"{namespace}/{name}").info(
            f"Rejecting MonitoringInstance {namespace}/{name}: {message}")
        raise kopf.AdmissionError(f"invalid spec: {message}", code=422)
