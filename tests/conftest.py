import pytest

from dash_animator.utils.config import Settings


@pytest.fixture
def config(tmp_path):
    return Settings(output_dir=str(tmp_path / "outputs"))


@pytest.fixture
def dashed_svg():
    return """
<svg xmlns=\"http://www.w3.org/2000/svg\" viewBox=\"0 0 120 60\" width=\"120\" height=\"60\">
  <path id=\"a\" stroke=\"#000\" stroke-width=\"4\" stroke-dasharray=\"5,7\" fill=\"none\" d=\"M0 20 L120 20\" />
  <line id=\"b\" stroke=\"#000\" stroke-width=\"4\" style=\"stroke-dasharray: 10 10\" x1=\"0\" y1=\"40\" x2=\"120\" y2=\"40\" />
</svg>
""".strip()
