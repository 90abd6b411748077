"""Workflow definitions shared by the test suite."""

from enum import Enum

from durastate import (
    FunctionHandler,
    ProcessingContext,
    Registry,
    StateDescriptor,
    StateHandler,
    build_registry,
)


class ScriptedService:
    """
    Fake external service.

    Failures and hangs are one-shot per record id. Calls are keyed by the
    context's idempotency key, so ``effects`` shows what a deduplicating
    remote would actually have applied.
    """

    def __init__(self):
        self.fail_once: set[str] = set()
        self.hang_once: set[str] = set()
        self.calls: list[str] = []
        self.effects: set[str] = set()

    def call(self, context: ProcessingContext) -> None:
        key = context.idempotency_key()
        self.calls.append(key)
        self.effects.add(key)


class StepAHandler(StateHandler):

    def __init__(self, service: ScriptedService):
        self.service = service

    def handle(self, context: ProcessingContext) -> bool:
        record_id = context.record.record_id
        if record_id in self.service.fail_once:
            self.service.fail_once.discard(record_id)
            raise RuntimeError("mock failure")
        self.service.call(context)
        context.transition_to("stepB")
        return False


class StepBHandler(StateHandler):

    def __init__(self, service: ScriptedService):
        self.service = service

    def handle(self, context: ProcessingContext) -> bool:
        record_id = context.record.record_id
        if record_id in self.service.hang_once:
            self.service.hang_once.discard(record_id)
            return True
        self.service.call(context)
        context.transition_to("success")
        return False


def step_registry(service: ScriptedService) -> Registry:
    return Registry(
        {
            "stepA": StateDescriptor({"stepB", "fail"}, StepAHandler(service)),
            "stepB": StateDescriptor({"success", "fail"}, StepBHandler(service)),
            "success": StateDescriptor.terminal(),
            "fail": StateDescriptor.terminal(),
        },
        name="steps",
    )


class Transfer(str, Enum):
    AUDIT = "audit"
    DEDUCT = "deduct"
    SETTLE = "settle"
    DONE = "done"
    REJECTED = "rejected"


def _audit(context):
    if context.record.payload.get("amount", 0) <= 0:
        context.transition_to(Transfer.REJECTED)
    else:
        context.transition_to(Transfer.DEDUCT)


def _deduct(context):
    context.record.payload["deducted"] = True
    context.transition_to(Transfer.SETTLE)


def _settle(context):
    context.transition_to(Transfer.DONE)


def transfer_registry() -> Registry:
    """Three-phase transfer that runs straight through."""
    return Registry.from_enum(
        Transfer,
        {
            Transfer.AUDIT: StateDescriptor({Transfer.DEDUCT, Transfer.REJECTED}, FunctionHandler(_audit)),
            Transfer.DEDUCT: StateDescriptor({Transfer.SETTLE}, _deduct),
            Transfer.SETTLE: StateDescriptor({Transfer.DONE}, _settle),
            Transfer.DONE: StateDescriptor.terminal(),
            Transfer.REJECTED: StateDescriptor.terminal(),
        },
        name="transfer",
    )


# Pauses in "waiting" until resumed by a sweep that finds "ready" in the payload
def _wait(context):
    if context.record.payload.get("ready"):
        context.transition_to("done")
        return False
    return True


CALLBACK_REGISTRY = build_registry(
    {"waiting": ["done"]},
    handlers={"waiting": _wait},
    name="callback",
)
