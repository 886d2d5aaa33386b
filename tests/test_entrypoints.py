import importlib

import pytest


ENTRYPOINTS = [
    "qrscan",
    "list_scans",
    "web.app",
]


@pytest.mark.parametrize("module_name", ENTRYPOINTS)
def test_entrypoint_help(module_name):
    module = importlib.import_module(module_name)
    assert hasattr(module, "main"), f"{module_name} missing main()"

    with pytest.raises(SystemExit) as excinfo:
        module.main(["--help"])

    assert excinfo.value.code == 0


@pytest.mark.parametrize("subcommand", [["replay"], ["scans", "list"], ["scans", "clear"], ["serve"]])
def test_subcommand_help(subcommand):
    qrscan = importlib.import_module("qrscan")

    with pytest.raises(SystemExit) as excinfo:
        qrscan.main([*subcommand, "--help"])

    assert excinfo.value.code == 0
