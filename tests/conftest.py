"""Shared fixtures: Pulumi runs against in-memory mocks for every test."""

import pulumi
import pytest


class RecordingMocks(pulumi.runtime.Mocks):
    """Echo resource inputs back as state and keep them for inspection."""

    def __init__(self):
        self.resources: dict[tuple[str, str], dict] = {}

    def new_resource(self, args):
        self.resources[(args.typ, args.name)] = args.inputs
        return [f"{args.name}_id", args.inputs]

    def call(self, args):
        return {}

    def inputs(self, typ: str, name: str) -> dict:
        return self.resources[(typ, name)]


MOCKS = RecordingMocks()
pulumi.runtime.set_mocks(MOCKS, preview=False)


@pytest.fixture
def mocks() -> RecordingMocks:
    return MOCKS
