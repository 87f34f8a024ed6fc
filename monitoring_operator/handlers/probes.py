"""Liveness probes served on the health endpoint."""
import asyncio

import kopf

from ..constants import CRD_NAME
from ..errors import OperatorError


@kopf.on.probe(id='controller')
async def controller_probe(memo: kopf.Memo, **kwargs):
    """Fail when queued work is not being picked up or the CRD is gone."""
    controller = memo.controller
    if not controller.healthy():
        raise OperatorError(f"work queue stalled for {controller.queue.stalled_for():.0f}s")
    if not await asyncio.to_thread(memo.cluster.crd_exists):
        raise OperatorError(f"custom resource definition {CRD_NAME} not found")
    return {"queued": len(controller.queue), "instances": len(controller.states)}
