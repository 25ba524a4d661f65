"""
Integration tests for the `predict_rna` command-line interface.

The CLI is driven in-process through `main(argv)`; stdout is captured with
pytest's `capsys` to check the text and JSON layouts and the exit codes.
"""
from __future__ import annotations

import json

import pytest

from rna_fold.scripts.predict_rna import main, read_shape_file

pytestmark = pytest.mark.integration


def test_mfe_text_output(capsys):
    """
    The default output is the sequence and the MFE line in kcal/mol.
    """
    assert main(["--quiet", "gggaaaccc"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "GGGAAACCC"
    assert lines[1] == "(((...))) ( -1.20)"


def test_partition_json_output(capsys):
    """
    JSON output carries MFE, ensemble, centroid, MEA and samples.
    """
    code = main(["--quiet", "--json", "-p", "--MEA", "--samples", "5", "--seed", "1", "GGGAAACCC"])
    assert code == 0
    result = json.loads(capsys.readouterr().out)

    assert result["mfe"] == {"structure": "(((...)))", "energy": -1.2}
    assert result["ensemble"]["energy"] <= -1.2
    assert 0.0 < result["ensemble"]["mfe_frequency"] <= 1.0
    assert len(result["centroid"]["structure"]) == 9
    assert result["mea"]["gamma"] == 1.0
    assert len(result["samples"]) == 5


def test_invalid_sequence_exit_code(capsys):
    """
    Unsupported symbols are an input error with exit code 2.
    """
    assert main(["--quiet", "GGGXAACCC"]) == 2
    assert "Error" in capsys.readouterr().err


def test_gquad_with_circular_is_rejected(capsys):
    """
    The contradictory model flags are rejected before folding.
    """
    assert main(["--quiet", "-g", "-c", "GGAGGAGGAGG"]) == 2


def test_infeasible_constraint_exit_code(capsys):
    """
    A constraint no structure can satisfy makes the prediction fail with exit code 1.
    """
    assert main(["--quiet", "-C", "|.........", "AAAAAAAAAA"]) == 1
    assert "Prediction failed" in capsys.readouterr().err


def test_canonical_bp_only_drops_forced_pairs_that_cannot_form(capsys):
    """
    Without --canonicalBPonly a forced G-A pair is a usage error; with it the pair is dropped.
    """
    assert main(["--quiet", "-C", "(.......)", "GGGAAAAAA"]) == 2
    capsys.readouterr()
    assert main(["--quiet", "--canonicalBPonly", "-C", "(.......)", "GGGAAAAAA"]) == 0
    assert capsys.readouterr().out.splitlines()[1].startswith(".........")


def test_constraint_string_is_applied(capsys):
    """
    Forcing the innermost bases unpaired removes their pair from the MFE.
    """
    assert main(["--quiet", "-C", "..x...x..", "GGGAAACCC"]) == 0
    structure = capsys.readouterr().out.splitlines()[1].split()[0]
    assert structure[2] == "." and structure[6] == "."


def test_read_shape_file(tmp_path):
    """
    SHAPE files list 1-based positions with an optional nucleotide column.
    """
    path = tmp_path / "reactivities.shape"
    path.write_text("1 G 0.1\n3 0.9\n\n# comment\n5 A -999\n")
    assert read_shape_file(str(path), 6) == [0.1, None, 0.9, None, -999.0, None]


def test_shape_file_applied(tmp_path, capsys):
    """
    Folding with SHAPE data succeeds and keeps the text layout.
    """
    path = tmp_path / "reactivities.shape"
    path.write_text("\n".join(f"{pos} 0.05" for pos in range(1, 10)))
    assert main(["--quiet", "--shape", str(path), "GGGAAACCC"]) == 0
    assert capsys.readouterr().out.splitlines()[1].startswith("(((...)))")
