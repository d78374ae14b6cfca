from PIL import Image

from interface.CLIHandler import main


def test_cli_with_samples(tiny_assets, tmp_path, capsys):
    output = tmp_path / "out" / "styled.jpg"
    code = main(["--config", str(tiny_assets["config_path"]), "--output", str(output)])
    assert code == 0
    assert "Styled image saved to:" in capsys.readouterr().out
    assert Image.open(output).size == (24, 18)


def test_cli_with_own_images(tiny_assets, tmp_path):
    content = tmp_path / "content.png"
    style = tmp_path / "style.png"
    Image.new("RGB", (30, 60), color=(255, 0, 0)).save(content)
    Image.new("RGB", (8, 8), color=(0, 0, 255)).save(style)
    output = tmp_path / "styled.png"

    code = main([
        "--config", str(tiny_assets["config_path"]),
        "--content", str(content),
        "--style", str(style),
        "--output", str(output),
        "--restore", "resize",
    ])
    assert code == 0
    assert Image.open(output).size == (12, 24)


def test_cli_square_output(tiny_assets, tmp_path):
    output = tmp_path / "styled.png"
    code = main(["--config", str(tiny_assets["config_path"]), "--output", str(output), "--no-aspect"])
    assert code == 0
    assert Image.open(output).size == (24, 24)


def test_cli_invalid_content(tiny_assets, tmp_path, capsys):
    code = main([
        "--config", str(tiny_assets["config_path"]),
        "--content", str(tmp_path / "invalid_path.jpg"),
        "--output", str(tmp_path / "styled.jpg"),
    ])
    assert code != 0
    assert "Error" in capsys.readouterr().err


def test_cli_invalid_blend(tiny_assets, tmp_path, capsys):
    code = main(["--config", str(tiny_assets["config_path"]), "--output", str(tmp_path / "o.jpg"), "--blend", "3"])
    assert code != 0
    assert "blend_ratio" in capsys.readouterr().err


def test_cli_missing_models(tiny_assets, tmp_path, capsys):
    (tiny_assets["dir"] / "predict.pt").unlink()
    code = main(["--config", str(tiny_assets["config_path"]), "--output", str(tmp_path / "o.jpg")])
    assert code != 0
    assert "predict.pt" in capsys.readouterr().err
