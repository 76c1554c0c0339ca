import pytest

from builders import FULL_INFO, build_package, build_pdf


@pytest.fixture
def docx_file(tmp_path):
    path = tmp_path / "report.docx"
    build_package(path, "docx")
    return path


@pytest.fixture
def pdf_file(tmp_path):
    return build_pdf(tmp_path / "doc.pdf", **FULL_INFO)


@pytest.fixture
def staging_dir(tmp_path):
    d = tmp_path / "staging"
    d.mkdir()
    return d
