import pytest
import time
from conftest import FakeCommands, make_inspection, make_instance
from dci.MANAGERS.container_poller import ContainerPoller
from dci.MANAGERS.instance_orchestrator import InstanceOrchestrator
from dci.PARSERS.compose_parser import ComposeManifest
from dci.REGISTRY.session_registry import SessionRegistry

def test_stress_orchestration(tmp_path, settings, store, printer):
    """
    Stress test by starting one instance with 50 services.
    """
    content = "services:\n"
    container_ids = {}
    inspections = {}
    for i in range(50):
        content += f"  service_{i}:\n"
        content += f"    image: image_{i}\n"
        content += f"    ports:\n"
        content += f"      - \"{8000 + i}\"\n"
        container_ids[f"service_{i}"] = f"container_{i}"
        inspections[f"container_{i}"] = make_inspection({f"{8000 + i}/tcp": str(32768 + i)})
    compose_file = tmp_path / "docker-compose.yml"
    compose_file.write_text(content)

    commands = FakeCommands(container_ids=container_ids, inspections=inspections)
    poller = ContainerPoller(commands, printer=printer, sleep=lambda s: None)
    orchestrator = InstanceOrchestrator(settings, commands, store, printer, poller=poller)

    start_time = time.time()
    result = orchestrator.start(SessionRegistry())
    end_time = time.time()

    print(f"Started 50 services in {end_time - start_time:.2f}s")

    assert result.ok
    assert len(result.instance.services) == 50
    assert all(s.is_resolved for s in result.instance.services)
    assert len(commands.called("pull")) == 50

def test_stop_many_instances(settings, store, printer, commands):
    registry = SessionRegistry([make_instance(str(i)) for i in range(200)])
    store.save(registry)
    orchestrator = InstanceOrchestrator(settings, commands, store, printer)

    updated = orchestrator.stop(registry)

    assert updated.is_empty()
    assert len(commands.called("stop")) == 200
    assert store.load().is_empty()

def test_large_config_parsing(tmp_path):
    manifest = ComposeManifest(context={})

    # Generate a large compose file
    content = "services:\n"
    for i in range(1000):
        content += f"  service_{i}:\n"
        content += f"    image: image_{i}<skipPull>\n"
        content += f"    environment:\n"
        content += f"      - VAR_{i}=${{VALUE_{i}:-default}}\n"

    start_time = time.time()
    _, services = manifest.rewrite(content, output_dir=str(tmp_path))
    end_time = time.time()

    assert len(services) == 1000
    assert end_time - start_time < 2.0  # Should rewrite 1000 services in less than 2 seconds
