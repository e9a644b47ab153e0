from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.crate_builder import CrateBuilder

WIDGETS_LIB = '''
//! Widgets for every occasion.

pub mod shapes;

/// Current widget format version.
pub const VERSION: u32 = 3;
'''

WIDGETS_SHAPES = '''
/// Round things.
pub struct Circle {
    /// radius in mm
    pub radius: f64,
    pub legs: u8,
}
'''


@pytest.fixture
def crate_builder(tmp_path: Path) -> CrateBuilder:
    """Provide a reusable crate builder rooted at the pytest tmp_path."""
    return CrateBuilder(tmp_path)


@pytest.fixture
def widgets(crate_builder: CrateBuilder) -> Path:
    """A small crate with a nested module, a documented field and an undocumented one."""
    return crate_builder.write(
        "widgets",
        {
            "src/lib.rs": WIDGETS_LIB,
            "src/shapes.rs": WIDGETS_SHAPES,
        },
    )
