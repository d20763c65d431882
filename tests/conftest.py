import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest  # noqa: E402
from PySide6.QtWidgets import QApplication  # noqa: E402

SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<OME xmlns="http://www.openmicroscopy.org/Schemas/OME/2016-06">
  <Experimenter ID="Experimenter:0" UserName="jdoe"/>
  <Experimenter ID="Experimenter:1" FirstName="Ada" LastName="Lovelace" Email="ada@example.org"/>
  <Experiment ID="Experiment:0" Type="FRET" Description="Donor bleed-through"/>
  <Instrument ID="Instrument:0">
    <Laser ID="Laser:0" Medium="Ti-Sapphire" Type="Solid State"/>
    <Detector ID="Detector:0" Type="PMT" Manufacturer="Hamamatsu" Model="H7422" Gain="650"/>
  </Instrument>
  <Image ID="Image:0" Name="cells">
    <Description>first plane</Description>
  </Image>
</OME>
"""

BARE_XML = '<OME xmlns="http://www.openmicroscopy.org/Schemas/OME/2016-06"/>'


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def sample_xml() -> str:
    return SAMPLE_XML


@pytest.fixture
def bare_xml() -> str:
    return BARE_XML
