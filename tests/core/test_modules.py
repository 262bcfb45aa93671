"""
Tests for package-wide module conventions.
"""

import __future__
import importlib
import pkgutil

import pytest

import pydiscriminant


def _implementation_modules():
    names = []
    for info in pkgutil.walk_packages(pydiscriminant.__path__, 'pydiscriminant.'):
        if not info.ispkg:
            names.append(info.name)
    return sorted(names)


class TestModuleHeaders:
    """Implementation modules postpone annotation evaluation."""

    def test_modules_found(self):
        names = _implementation_modules()
        assert 'pydiscriminant.discriminant._boxm' in names
        assert 'pydiscriminant.core.validation' in names

    @pytest.mark.parametrize('name', _implementation_modules())
    def test_postponed_annotations(self, name):
        module = importlib.import_module(name)
        assert getattr(module, 'annotations', None) is __future__.annotations
