from havok_tagfile import HavokFile

from tagfile_builder import HK_550, HK_2010, TagfileBuilder, add_skeleton_550, add_skeleton_2010

# parents are deliberately not topologically sorted
BONES = [
    ("root", -1, (0.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0), True),
    ("hand", 2, (0.5, 0.25, -1.0), (0.0, 0.5, 0.0, 0.75), (1.0, 1.0, 1.0), False),
    ("arm", 0, (1.5, 2.0, 0.0), (0.25, 0.0, 0.0, 0.5), (2.0, 0.5, 1.0), False),
]


def _decode(version, writer, bones=BONES):
    builder = TagfileBuilder(version)
    obj = writer(builder, "Hero", bones)
    hk = HavokFile(builder.build())
    return hk.get_skeleton(builder.address(obj))


def test_hk2010_skeleton_reads_bones_parents_and_pose():
    skeleton = _decode(HK_2010, add_skeleton_2010)

    assert skeleton.name == "Hero"
    assert [bone.name for bone in skeleton.bones] == ["root", "hand", "arm"]
    assert [bone.parent_index for bone in skeleton.bones] == [-1, 2, 0]
    assert [bone.translation_locked for bone in skeleton.bones] == [True, False, False]

    hand = skeleton.bones[skeleton.bone_index("hand")]
    assert hand.position == (0.5, 0.25, -1.0)
    assert hand.rotation == (0.0, 0.5, 0.0, 0.75)
    assert skeleton.bones[2].scale == (2.0, 0.5, 1.0)


def test_both_layouts_decode_identical_bones():
    new = _decode(HK_2010, add_skeleton_2010)
    old = _decode(HK_550, add_skeleton_550)

    assert old.name == new.name
    assert old.bones == new.bones


def test_skeleton_without_reference_pose_keeps_identity_bones():
    builder = TagfileBuilder(HK_2010)
    obj = add_skeleton_2010(builder, "Bare", BONES)
    # Drop the reference pose pointer and count.
    builder.local_fixups = [fixup for fixup in builder.local_fixups if fixup[0] != obj + 36]
    builder.put(obj + 40, "II", 0, 0)

    skeleton = HavokFile(builder.build()).get_skeleton(builder.address(obj))
    assert [bone.parent_index for bone in skeleton.bones] == [-1, 2, 0]
    assert all(bone.position == (0.0, 0.0, 0.0) for bone in skeleton.bones)
    assert all(bone.rotation == (0.0, 0.0, 0.0, 1.0) for bone in skeleton.bones)
