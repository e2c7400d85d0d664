from harness_magick.core import command
from harness_magick.core.geometry import ActionKind, ActionRequest, plan_actions


def test_format_aliases() -> None:
    assert command.format_from_path("a/b/photo.JPEG") == "jpg"
    assert command.format_from_path("scan.tiff") == "tif"
    assert command.normalize_format(".PNG") == "png"


def test_page_number_only_for_paged_formats() -> None:
    assert command.page_number("pdf") == "[0]"
    assert command.page_number("tiff") == "[0]"
    assert command.page_number("eps") == "[0]"
    assert command.page_number("jpg") == ""


def test_background_variants() -> None:
    size = (120, 80)
    assert command.background_args(size, "#336699", "png") == ["-size", "120x80", "-background", "#336699"]
    assert command.background_args(size, "checkerboard", "jpg") == [
        "-size",
        "120x80",
        "-background",
        "none",
        "pattern:checkerboard",
    ]
    assert command.background_args(size, "transparent", "jpg")[-1] == "#FFF"
    assert command.background_args(size, "transparent", "png")[-1] == "none"
    assert command.background_args(size, "", "gif")[-1] == "none"


def test_quality_only_for_adjustable_formats() -> None:
    assert command.quality_args("jpg", 85) == ["-quality", "85"]
    assert command.quality_args("webp", 70) == ["-quality", "70"]
    assert command.quality_args("png", 95) == ["-quality", "95"]
    assert command.quality_args("gif", 85) == []


def test_optimize_parameters() -> None:
    assert command.optimize_args("png", "jpg") == ["-strip", "-interlace", "Plane"]
    assert command.optimize_args("jpg", "png") == ["-strip", "-define", "png:format=png00"]
    assert command.optimize_args("png", "webp") == [
        "-strip",
        "-define",
        "webp:lossless=true",
        "-define",
        "webp:image-hint=graph",
    ]
    assert command.optimize_args("jpg", "webp") == ["-strip"]
    assert command.optimize_args("jpg", "gif") == ["-strip"]


def test_build_convert_command_full_shape() -> None:
    plan = plan_actions([ActionRequest(ActionKind.CROP, 100, 100, x=10, y=10)], (500, 500))
    argv = command.build_convert_command(
        ["/usr/bin/convert"],
        "in dir/source.pdf",
        "out/target.png",
        plan,
        input_format="pdf",
        output_format="png",
        background="transparent",
        quality=95,
    )
    assert argv == [
        "/usr/bin/convert",
        "-size",
        "100x100",
        "-background",
        "none",
        "(",
        "-auto-orient",
        "+profile",
        "*",
        "-auto-orient",
        "in dir/source.pdf[0]",
        "-gravity",
        "NorthWest",
        "-crop",
        "100x100+10+10!",
        "-flatten",
        ")",
        "-colorspace",
        "sRGB",
        "-flatten",
        "-quality",
        "95",
        "-strip",
        "-define",
        "png:format=png00",
        "png:out/target.png",
    ]


def test_shell_command_quotes_paths_and_bang() -> None:
    line = command.shell_command(["convert", "my photo!.jpg", "(", "-resize", "10x10!"])
    assert line == "convert 'my photo!.jpg' '(' -resize '10x10!'"
