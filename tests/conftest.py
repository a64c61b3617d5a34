from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from readoutgen.core.config import ConfigService
from readoutgen.core.contracts import (
    DataReaderConf,
    DROStreamConf,
    LinkHandlerConf,
    NetworkConnectionDescriptor,
    NetworkConnectionRule,
    QueueConnectionRule,
    QueueDescriptor,
    ReadoutApplication,
    ReadoutGroup,
    Session,
    TPHandlerConf,
)
from readoutgen.core.store import InMemoryConfigStore

DBFILE = "test-readout.data.xml"


def _write_yaml(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


@pytest.fixture
def sample_config_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary configuration directory for tests.
    """

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    readout_yaml = """
    descriptors:
      queues:
        - uid: "dlh-input"
          data_type: "DataFrame"
          queue_type: "kFollySPSCQueue"
          capacity: 1000
        - uid: "tp-input"
          data_type: "TriggerPrimitive"
          queue_type: "kFollyMPMCQueue"
          capacity: 10
      networks:
        - uid: "data-requests"
          uid_base: "tp_conn_"
          data_type: "DataRequest"
          connection_type: "kSendRecv"
          uri: "tcp://127.0.0.1"
          port: 14000
        - uid: "tp-requests"
          uid_base: "tph_"
          data_type: "DataRequest"
          connection_type: "kSendRecv"
          uri: "tcp://127.0.0.1"
          port: 15000

    applications:
      - uid: "ru-01"
        class: "ReadoutApplication"
        link_handler:
          uid: "def-link-handler"
          template_for: "FDDataLinkHandler"
          options:
            post_processing_enabled: true
        data_reader:
          uid: "def-card-reader"
          template_for: "FelixCardReader"
        tp_handler:
          uid: "def-tp-handler"
        tp_src_id: 7
        queue_rules:
          - destination_class: "DLH"
            descriptor: "dlh-input"
          - destination_class: "TPHandler"
            descriptor: "tp-input"
        network_rules:
          - endpoint_class: "FDDataLinkHandler"
            descriptor: "data-requests"
          - endpoint_class: "TPHandler"
            descriptor: "tp-requests"
        contains:
          - uid: "group-a"
            class: "ReadoutGroup"
            contains:
              - uid: "stream-1"
                class: "DROStreamConf"
                src_id: 1
              - uid: "stream-2"
                class: "DROStreamConf"
                src_id: 2
          - uid: "group-b"
            class: "ReadoutGroup"
            contains:
              - uid: "stream-3"
                class: "DROStreamConf"
                src_id: 3

      - uid: "ru-02"
        link_handler:
          uid: "def-link-handler"
          template_for: "FDDataLinkHandler"
        data_reader:
          uid: "def-card-reader"
          template_for: "FelixCardReader"
        queue_rules:
          - destination_class: "DLH"
            descriptor: "dlh-input"
        network_rules:
          - endpoint_class: "DLH"
            descriptor: "data-requests"
        contains:
          - uid: "group-c"
            class: "ReadoutGroup"
            contains:
              - uid: "stream-10"
                class: "DROStreamConf"
                src_id: 10
    """
    session_yaml = """
    session:
      uid: "lab-session"
      disabled:
        - "stream-2"
    """
    _write_yaml(config_dir / "readout.yaml", readout_yaml)
    _write_yaml(config_dir / "session.yaml", session_yaml)
    return config_dir


@pytest.fixture
def sample_config_service(sample_config_dir: Path) -> ConfigService:
    """Return a ConfigService wired to the temporary configuration."""

    return ConfigService(config_dir=sample_config_dir)


@pytest.fixture
def store() -> InMemoryConfigStore:
    return InMemoryConfigStore()


@pytest.fixture
def session() -> Session:
    return Session(uid="test-session")


@pytest.fixture
def dlh_queue() -> QueueDescriptor:
    return QueueDescriptor(uid="dlh-input", data_type="DataFrame", capacity=1000)


@pytest.fixture
def dlh_network() -> NetworkConnectionDescriptor:
    return NetworkConnectionDescriptor(
        uid="data-requests",
        uid_base="tp_conn_",
        data_type="DataRequest",
        uri="tcp://127.0.0.1",
        port=14000,
    )


@pytest.fixture
def tp_queue() -> QueueDescriptor:
    return QueueDescriptor(
        uid="tp-input", data_type="TriggerPrimitive", queue_type="kFollyMPMCQueue", capacity=10
    )


@pytest.fixture
def tp_network() -> NetworkConnectionDescriptor:
    return NetworkConnectionDescriptor(
        uid="tp-requests",
        uid_base="tph_",
        data_type="DataRequest",
        uri="tcp://127.0.0.1",
        port=15000,
    )


def make_group(uid: str, *src_ids: int) -> ReadoutGroup:
    return ReadoutGroup(
        uid=uid,
        contains=[DROStreamConf(uid=f"stream-{src_id}", src_id=src_id) for src_id in src_ids],
    )


@pytest.fixture
def make_readout_group() -> Callable[..., ReadoutGroup]:
    return make_group


@pytest.fixture
def make_app(
    dlh_queue: QueueDescriptor,
    dlh_network: NetworkConnectionDescriptor,
    tp_queue: QueueDescriptor,
    tp_network: NetworkConnectionDescriptor,
) -> Callable[..., ReadoutApplication]:
    """Factory building readout applications with sensible defaults."""

    def _make(
        groups: list[Any] | None = None,
        *,
        with_tp: bool = False,
        tp_src_id: int = 7,
        tp_rules: bool = True,
        **overrides: Any,
    ) -> ReadoutApplication:
        queue_rules = [
            QueueConnectionRule(uid="q-dlh", destination_class="DLH", descriptor=dlh_queue)
        ]
        network_rules = [
            NetworkConnectionRule(uid="n-dlh", endpoint_class="DLH", descriptor=dlh_network)
        ]
        if with_tp and tp_rules:
            queue_rules.append(
                QueueConnectionRule(uid="q-tp", destination_class="TPHandler", descriptor=tp_queue)
            )
            network_rules.append(
                NetworkConnectionRule(uid="n-tp", endpoint_class="TPHandler", descriptor=tp_network)
            )
        fields: dict[str, Any] = {
            "uid": "ru-test",
            "link_handler": LinkHandlerConf(uid="def-link-handler", template_for="DataLinkHandler"),
            "data_reader": DataReaderConf(uid="def-card-reader", template_for="FelixCardReader"),
            "tp_handler": TPHandlerConf(uid="def-tp-handler") if with_tp else None,
            "tp_src_id": tp_src_id if with_tp else 0,
            "queue_rules": queue_rules,
            "network_rules": network_rules,
            "contains": groups if groups is not None else [make_group("group-a", 1, 2)],
        }
        fields.update(overrides)
        return ReadoutApplication(**fields)

    return _make
