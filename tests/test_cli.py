from havok_tagfile.cli import main

from tagfile_builder import (
    TagfileBuilder,
    BlockWriter,
    add_animation,
    add_box_shape,
    add_physics_system,
    add_rigid_body,
    add_skeleton_2010,
)


def _write_file(tmp_path):
    builder = TagfileBuilder()
    add_skeleton_2010(
        builder,
        "Hero",
        [
            ("root", -1, (0.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0), True),
            ("head", 0, (0.0, 1.5, 0.0), (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0), False),
        ],
    )
    block = BlockWriter([(0, 0x01, 0, 0)]).floats(1.0).getvalue()
    add_animation(builder, [block], num_transform_tracks=1, bone_names=["root"], duration=1.5)
    body = add_rigid_body(builder, add_box_shape(builder, (1.0, 1.0, 1.0, 0.0)))
    add_physics_system(builder, [body], ["crate"])
    builder.add_object("hkpListShape", 16)

    path = tmp_path / "hero.hkx"
    path.write_bytes(builder.build())
    return path


def test_summary_lists_sections_and_objects(tmp_path, capsys):
    path = _write_file(tmp_path)

    assert main(["summary", str(path)]) == 0
    out = capsys.readouterr().out
    assert "hk_2010.2.0-r1" in out
    assert "__data__" in out
    assert "PhysicsSystem" in out
    assert "hkpListShape (skipped)" in out


def test_skeletons_prints_bones(tmp_path, capsys):
    path = _write_file(tmp_path)

    assert main(["skeletons", str(path)]) == 0
    out = capsys.readouterr().out
    assert "Hero" in out
    assert "root" in out
    assert "head" in out


def test_animations_prints_durations(tmp_path, capsys):
    path = _write_file(tmp_path)

    assert main(["animations", str(path)]) == 0
    assert "1.500" in capsys.readouterr().out


def test_strict_flag_reports_unknown_class(tmp_path, capsys):
    path = _write_file(tmp_path)

    assert main(["--strict", "summary", str(path)]) == 1
    assert "hkpListShape" in capsys.readouterr().out


def test_decoding_errors_return_nonzero(tmp_path, capsys):
    path = tmp_path / "broken.hkx"
    path.write_bytes(b"\0" * 128)

    assert main(["summary", str(path)]) == 1
    assert "Error:" in capsys.readouterr().out
    assert main(["summary", str(tmp_path / "missing.hkx")]) == 1
