import random
import string
import pytest
from dci.errors import ManifestError
from dci.PARSERS.compose_parser import ComposeManifest
from dci.UTILS.string_interpolation import EnvironmentInterpolator

def random_string(length):
    return ''.join(random.choice(string.printable) for _ in range(length))

def test_fuzz_compose_manifest(tmp_path):
    manifest = ComposeManifest(context={'TAG': '1.0'})
    for _ in range(100):
        content = random_string(random.randint(0, 1000))
        # Junk must be rejected as ManifestError, never IndexError or AttributeError
        try:
            manifest.rewrite(content, output_dir=str(tmp_path))
        except ManifestError:
            pass

def test_fuzz_interpolation():
    for _ in range(100):
        content = random_string(random.randint(0, 1000))
        try:
            EnvironmentInterpolator.interpolate(content, {'TAG': '1.0'})
        except ManifestError:
            pass

@pytest.mark.parametrize("content", [
    "services:\n  web: nginx\n",
    "services:\n  web:\n    ports: [[]]\n",
    "services:\n  web:\n    ports: [{}]\n",
    "services:\n  web:\n    ports: ['']\n",
    "services:\n  - web\n",
    "${unclosed\nservices: {}",
])
def test_edge_cases_manifest(content, tmp_path):
    with pytest.raises(ManifestError):
        ComposeManifest(context={}).rewrite(content, output_dir=str(tmp_path))

def test_edge_cases_accepted(tmp_path):
    manifest = ComposeManifest(context={})

    # Service without any settings
    _, services = manifest.rewrite("services:\n  web:\n", output_dir=str(tmp_path))
    assert services[0].image_name == 'web'

    # Environment values that are not strings
    content = "services:\n  web:\n    image: nginx\n    environment:\n      DEBUG: 1\n      EMPTY:\n"
    _, services = manifest.rewrite(content, output_dir=str(tmp_path))
    assert services[0].ports == []
