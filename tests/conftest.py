from __future__ import annotations

from typing import Callable, Union

import pytest

from s1singularity.api.client import APIClient

from fakes import FakeResponse, FakeSession, Handler


TOKEN = "s3cr3t-token"
ENDPOINT = "usea1.example.net"


@pytest.fixture
def make_client() -> Callable[..., tuple[APIClient, FakeSession]]:
    def _make(responses: Union[list[FakeResponse], Handler]) -> tuple[APIClient, FakeSession]:
        session = FakeSession(responses)
        client = APIClient(TOKEN, ENDPOINT, session=session, chunk_size=4)
        return client, session

    return _make
