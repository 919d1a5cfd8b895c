from openpyxl import Workbook, load_workbook

from recon_checker import cli

from conftest import HORIZON_HEADERS


def _write_lieliska(path, trailing=("Svitrkods", "Summa")):
    wb = Workbook()
    ws = wb.active
    ws.append(HORIZON_HEADERS + list(trailing))
    ws.append(["A", "1", "01.01.2026.", "D", "X", "30", "EUR", "G", "R1", "50", "Given", "9815", "0000000000009815", "30"])
    ws.append(["A", "2", "01.01.2026.", "D", "X", "12", "EUR", "G", "R2", "50", "Given", "7777", None, None])
    wb.save(path)


def test_lieliska_command_writes_workbook(tmp_path, capsys):
    src = tmp_path / "lieliska.xlsx"
    out = tmp_path / "result.xlsx"
    _write_lieliska(src)

    code = cli.main(["lieliska", "--excel", str(src), "--out", str(out)])

    assert code == 0
    assert f"Wrote: {out}" in capsys.readouterr().out
    ws = load_workbook(out).active
    assert ws.cell(row=2, column=13).value == "0000000000009815"


def test_schema_error_exits_non_zero(tmp_path, capsys):
    src = tmp_path / "bad.xlsx"
    _write_lieliska(src, trailing=("Svitrkods", "Total"))

    code = cli.main(["lieliska", "--excel", str(src), "--out", str(tmp_path / "x.xlsx")])

    assert code == 1
    assert "Expected Summa column." in capsys.readouterr().err


def test_missing_input_exits_non_zero(tmp_path):
    assert cli.main(["lieliska", "--excel", str(tmp_path / "nope.xlsx")]) == 1


def test_extraction_flags_override_environment(monkeypatch):
    monkeypatch.setenv("RECON_CELL_GAP", "7")
    args = cli.parse_args(["pdf", "act.pdf", "--row-eps", "4", "--backend", "pypdf"])
    extraction = cli._extraction_config(cli.load_config(), args)
    assert extraction.row_eps == 4.0
    assert extraction.cell_gap == 7.0
    assert extraction.backend == "pypdf"
