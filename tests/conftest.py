"""Shared pytest fixtures for pdxschema tests."""

import pytest
import tempfile
import zipfile
from pathlib import Path


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_save_text():
    """Return a small gamestate-like save."""
    return '''version="Stellaris v3.9.1"
date="2200.01.01"
name="Test Empire"
ironman=no
player={
	{
		name="Player"
		country=0
	}
}
country={
	0={
		name="United Nations"
		capital=12
		budget=1520.5
		flag={ colors={ "blue" "white" } }
		trait="adaptive"
		trait="rapid_breeders"
		trait="intelligent"
	}
	1={
		name="Tzynn Empire"
		capital=40
		budget=890
		flag={ colors={ "red" "black" } }
		trait="strong"
	}
}
planets={
	planet={
		12={ name="Earth" size=16 pops={ 1 2 3 } }
		40={ name="Tzynn" size=20 pops={ } }
	}
}
'''


@pytest.fixture
def sample_save_file(temp_dir, sample_save_text):
    """Write the sample save to sources/gamestate/."""
    sources_dir = temp_dir / "sources" / "gamestate"
    sources_dir.mkdir(parents=True)
    save_file = sources_dir / "test.sav"
    save_file.write_text(sample_save_text, encoding="utf-8")
    return save_file


@pytest.fixture
def sample_archive(temp_dir, sample_save_text):
    """Write a zipped save with gamestate and meta members."""
    archive_path = temp_dir / "ironman.sav"
    with zipfile.ZipFile(archive_path, "w") as archive:
        archive.writestr("gamestate", sample_save_text)
        archive.writestr("meta", 'version="Stellaris v3.9.1"\nname="Test Empire"\n')
    return archive_path


@pytest.fixture
def sample_config_yaml():
    """Return valid config YAML for testing."""
    return """analysis:
  max_depth: 32
  keywords: python

schemas:
  - gamestate
"""


@pytest.fixture
def sample_config_file(temp_dir, sample_config_yaml):
    """Create a temporary config file."""
    config_file = temp_dir / "pdxschema.yml"
    config_file.write_text(sample_config_yaml)
    return config_file
