from __future__ import annotations

from pathlib import Path

import pytest

from ak_core import PackageRef
from ak_core.errors import InvalidInputError, StorageError
from ak_core.security import safe_output_path, validate_package_name, validate_ref, validate_version
from ak_core.types import split_manifest_key


@pytest.mark.parametrize(
    "spec,name,version",
    [
        ("lodash", "lodash", "latest"),
        ("lodash@4.17.21", "lodash", "4.17.21"),
        ("lodash@", "lodash", "latest"),
        ("@types/node", "@types/node", "latest"),
        ("@types/node@20.11.0", "@types/node", "20.11.0"),
        ("  react@18.2.0 ", "react", "18.2.0"),
    ],
)
def test_parse(spec: str, name: str, version: str) -> None:
    ref = PackageRef.parse(spec)
    assert (ref.name, ref.version) == (name, version)
    assert ref.is_latest is (version == "latest")


def test_str_is_name_at_version() -> None:
    assert str(PackageRef("@scope/pkg", "1.0.0")) == "@scope/pkg@1.0.0"


@pytest.mark.parametrize("name", ["lodash", "left-pad", "@babel/core", "snake_case", "A1"])
def test_valid_names(name: str) -> None:
    assert validate_package_name(name) == name


@pytest.mark.parametrize(
    "name",
    ["", "../evil", "a/b", "@scope", "@scope/", "@/pkg", "pkg name", "pkg;rm", "..", "pkg\n"],
)
def test_invalid_names(name: str) -> None:
    with pytest.raises(InvalidInputError):
        validate_package_name(name)


@pytest.mark.parametrize("version", ["latest", "1.0.0", "0.0.1-alpha.1", "2.0.0-rc.1+build.5"])
def test_valid_versions(version: str) -> None:
    assert validate_version(version) == version


@pytest.mark.parametrize("version", ["", "1", "1.0", "01.0.0", "v1.0.0", "../1.0.0", "^1.0.0"])
def test_invalid_versions(version: str) -> None:
    with pytest.raises(InvalidInputError):
        validate_version(version)


def test_validate_ref_checks_both_parts() -> None:
    assert validate_ref(PackageRef("lodash", "4.17.21")).name == "lodash"
    with pytest.raises(InvalidInputError):
        validate_ref(PackageRef("lodash", "nope"))


def test_safe_output_path_blocks_escapes(tmp_path: Path) -> None:
    assert safe_output_path(tmp_path, "a/b.tgz") == (tmp_path / "a" / "b.tgz").resolve()
    with pytest.raises(StorageError):
        safe_output_path(tmp_path, "../outside.tgz")
    with pytest.raises(StorageError):
        safe_output_path(tmp_path, ".")


def test_split_manifest_key() -> None:
    assert split_manifest_key("@scope/pkg@1.0.0") == ("@scope/pkg", "1.0.0")
    with pytest.raises(ValueError):
        split_manifest_key("no-version")
