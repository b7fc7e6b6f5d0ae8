import numpy as np
import pytest

from dnetkit.image import (
    Image,
    bilinear_interpolate,
    binarize_image,
    blend_image,
    border_image,
    center_crop_image,
    collapse_image_layers,
    collapse_images_horz,
    collapse_images_vert,
    composite_image,
    constrain_image,
    copy_image_into,
    crop_image,
    embed_image,
    fill_image,
    flip_image,
    float_to_image,
    format_image,
    get_image_layer,
    image_distance,
    letterbox_image,
    letterbox_image_into,
    make_empty_image,
    make_image,
    make_random_image,
    normalize_image,
    normalize_image2,
    place_image,
    random_crop_image,
    resize_image,
    resize_max,
    resize_min,
    rotate_crop_image,
    rotate_image,
    rotate_image_cw,
    scale_image,
    threshold_image,
    tile_images,
    translate_image,
    transpose_image,
)


def ramp(w, h, c):
    n = w * h * c
    return float_to_image(w, h, c, np.arange(n, dtype=np.float32) / n)


def test_make_image_is_zero_filled():
    im = make_image(3, 2, 4)
    assert im.data.size == 24
    assert not im.data.any()


def test_make_empty_image_has_no_data():
    im = make_empty_image(2, 2, 1)
    assert im.data is None
    with pytest.raises(ValueError):
        im.pixels


def test_pixel_round_trip_and_layout():
    im = make_image(3, 2, 2)
    im.set_pixel(2, 1, 1, 7.0)
    assert im.get_pixel(2, 1, 1) == 7.0
    assert im.data[1 * 6 + 1 * 3 + 2] == 7.0


def test_set_pixel_outside_is_ignored():
    im = make_image(2, 2, 1)
    im.set_pixel(5, 0, 0, 3.0)
    im.set_pixel(-1, 0, 0, 3.0)
    assert not im.data.any()


def test_get_pixel_outside_raises():
    im = make_image(2, 2, 1)
    with pytest.raises(IndexError):
        im.get_pixel(2, 0, 0)
    with pytest.raises(IndexError):
        im.add_pixel(0, 0, 1, 1.0)


def test_get_pixel_extend_outside_is_zero():
    im = ramp(2, 2, 1)
    assert im.get_pixel_extend(-1, 0, 0) == 0.0
    assert im.get_pixel_extend(1, 1, 3) == 0.0
    assert im.get_pixel_extend(1, 1, 0) == im.get_pixel(1, 1, 0)


def test_add_pixel_accumulates():
    im = ramp(2, 2, 1)
    before = im.get_pixel(1, 0, 0)
    im.add_pixel(1, 0, 0, 2.0)
    assert im.get_pixel(1, 0, 0) == pytest.approx(before + 2.0)


def test_copy_is_independent():
    im = ramp(2, 2, 1)
    dup = im.copy()
    dup.set_pixel(0, 0, 0, 9.0)
    assert im.get_pixel(0, 0, 0) != dup.get_pixel(0, 0, 0)
    assert np.array_equal(im.data[1:], dup.data[1:])


def test_float_to_image_shares_data():
    data = np.zeros(4, dtype=np.float32)
    im = float_to_image(2, 2, 1, data)
    im.set_pixel(1, 1, 0, 5.0)
    assert data[3] == 5.0


def test_float_to_image_rejects_short_data():
    with pytest.raises(ValueError):
        float_to_image(3, 3, 1, [0.0] * 4)


def test_random_image_is_reproducible():
    a = make_random_image(50, 50, 4, np.random.default_rng(3))
    b = make_random_image(50, 50, 4, np.random.default_rng(3))
    assert np.array_equal(a.data, b.data)
    assert a.data.mean() == pytest.approx(0.5, abs=0.02)
    assert a.data.std() == pytest.approx(0.25, abs=0.02)


def test_copy_image_into():
    src = ramp(2, 2, 2)
    dest = make_image(2, 2, 2)
    copy_image_into(src, dest)
    assert np.array_equal(src.data, dest.data)


def test_bilinear_at_integer_points_is_pixel():
    im = ramp(3, 3, 2)
    assert bilinear_interpolate(im, 2.0, 1.0, 1) == pytest.approx(im.get_pixel(2, 1, 1))
    assert bilinear_interpolate(im, -5.0, 1.0, 0) == 0.0


def test_embed_then_crop_round_trip():
    src = ramp(2, 3, 2)
    dest = make_image(6, 6, 2)
    embed_image(src, dest, 3, 2)
    back = crop_image(dest, 3, 2, 2, 3)
    assert np.array_equal(back.data, src.data)


def test_embed_clips_at_edges():
    src = ramp(3, 3, 1)
    dest = make_image(2, 2, 1)
    embed_image(src, dest, -1, -1)
    assert dest.get_pixel(0, 0, 0) == src.get_pixel(1, 1, 0)
    assert dest.get_pixel(1, 1, 0) == src.get_pixel(2, 2, 0)


def test_composite_multiplies():
    src = ramp(2, 2, 1)
    dest = make_image(2, 2, 1)
    fill_image(dest, 2.0)
    composite_image(src, dest, 0, 0)
    assert dest.data == pytest.approx(src.data * 2)


def test_crop_clamps_edge_pixels():
    im = ramp(3, 2, 1)
    cropped = crop_image(im, -2, 0, 2, 2)
    assert cropped.get_pixel(0, 0, 0) == im.get_pixel(0, 0, 0)
    assert cropped.get_pixel(1, 1, 0) == im.get_pixel(0, 1, 0)


def test_random_crop_full_size_is_identity():
    im = ramp(4, 3, 2)
    out = random_crop_image(im, 4, 3, np.random.default_rng(0))
    assert np.array_equal(out.data, im.data)


def test_resize_same_size_is_identity():
    im = ramp(4, 3, 2)
    out = resize_image(im, 4, 3)
    assert out.data == pytest.approx(im.data)


def test_resize_keeps_corners():
    im = ramp(4, 3, 1)
    out = resize_image(im, 7, 5)
    assert (out.w, out.h, out.c) == (7, 5, 1)
    assert out.get_pixel(0, 0, 0) == pytest.approx(im.get_pixel(0, 0, 0))
    assert out.get_pixel(6, 4, 0) == pytest.approx(im.get_pixel(3, 2, 0))


def test_resize_constant_stays_constant():
    im = make_image(5, 4, 3)
    fill_image(im, 0.3)
    out = resize_image(im, 9, 2)
    assert out.data == pytest.approx(np.full(9 * 2 * 3, 0.3))


def test_resize_max_and_min():
    im = ramp(8, 4, 1)
    assert resize_max(im, 8) is im
    smaller = resize_max(im, 4)
    assert (smaller.w, smaller.h) == (4, 2)
    assert resize_min(im, 4) is im
    larger = resize_min(im, 8)
    assert (larger.w, larger.h) == (16, 8)


def test_center_crop_square_same_size():
    im = ramp(3, 3, 2)
    out = center_crop_image(im, 3, 3)
    assert out.data == pytest.approx(im.data)


def test_letterbox_fills_with_grey():
    im = ramp(4, 2, 1)
    out = letterbox_image(im, 4, 4)
    assert out.pixels[0, 0] == pytest.approx([0.5] * 4)
    assert out.pixels[0, 3] == pytest.approx([0.5] * 4)
    assert out.pixels[0, 1:3] == pytest.approx(im.pixels[0])


def test_letterbox_into_leaves_margin_untouched():
    im = ramp(4, 2, 1)
    boxed = make_image(4, 4, 1)
    fill_image(boxed, -1.0)
    letterbox_image_into(im, 4, 4, boxed)
    assert boxed.get_pixel(0, 0, 0) == -1.0
    assert boxed.pixels[0, 1:3] == pytest.approx(im.pixels[0])


def test_place_image_same_size():
    im = ramp(3, 3, 1)
    canvas = make_image(5, 5, 1)
    place_image(im, 3, 3, 1, 1, canvas)
    assert canvas.pixels[0, 1:4, 1:4] == pytest.approx(im.pixels[0], abs=1e-5)
    assert canvas.get_pixel(0, 0, 0) == 0.0


def test_rotate_by_zero_is_identity():
    im = ramp(4, 3, 2)
    assert rotate_image(im, 0.0).data == pytest.approx(im.data)


def test_rotate_crop_neutral_is_identity():
    im = ramp(4, 4, 1)
    out = rotate_crop_image(im, 0.0, 1.0, 4, 4, 0.0, 0.0, 1.0)
    assert out.data == pytest.approx(im.data)


def test_rotate_cw_four_times_is_identity():
    im = ramp(3, 3, 2)
    original = im.data.copy()
    rotate_image_cw(im, 1)
    assert not np.array_equal(im.data, original)
    rotate_image_cw(im, 3)
    assert np.array_equal(im.data, original)


def test_rotate_cw_negative_matches_positive():
    a = ramp(4, 4, 1)
    b = ramp(4, 4, 1)
    rotate_image_cw(a, -1)
    rotate_image_cw(b, 3)
    assert np.array_equal(a.data, b.data)


def test_rotate_requires_square():
    with pytest.raises(ValueError):
        rotate_image_cw(ramp(3, 2, 1), 1)


def test_transpose_swaps_and_is_involution():
    im = ramp(3, 3, 1)
    original = im.copy()
    transpose_image(im)
    assert im.get_pixel(2, 0, 0) == original.get_pixel(0, 2, 0)
    transpose_image(im)
    assert np.array_equal(im.data, original.data)
    with pytest.raises(ValueError):
        transpose_image(ramp(2, 3, 1))


def test_flip_mirrors_rows():
    im = ramp(3, 2, 2)
    original = im.copy()
    flip_image(im)
    assert im.get_pixel(0, 1, 1) == original.get_pixel(2, 1, 1)
    flip_image(im)
    assert np.array_equal(im.data, original.data)


def test_fill_translate_scale():
    im = make_image(2, 2, 1)
    fill_image(im, 1.5)
    translate_image(im, 0.5)
    scale_image(im, 3.0)
    assert im.data == pytest.approx([6.0] * 4)


def test_constrain_clamps():
    im = float_to_image(2, 2, 1, [-1.0, 0.25, 2.0, 0.75])
    constrain_image(im)
    assert im.data.min() >= 0.0
    assert im.data.max() <= 1.0
    assert im.data[1] == pytest.approx(0.25)


def test_normalize_image_range():
    im = float_to_image(2, 2, 1, [3.0, -1.0, 7.0, 2.0])
    normalize_image(im)
    assert im.data.min() == pytest.approx(0.0)
    assert im.data.max() == pytest.approx(1.0)


def test_normalize_constant_image_unchanged():
    im = make_image(2, 2, 1)
    fill_image(im, 0.4)
    normalize_image(im)
    assert im.data == pytest.approx([0.4] * 4)


def test_normalize_image2_per_channel():
    im = float_to_image(2, 1, 2, [1.0, 3.0, 10.0, 20.0])
    normalize_image2(im)
    for plane in im.pixels:
        assert plane.min() == pytest.approx(0.0)
        assert plane.max() == pytest.approx(1.0)


def test_get_image_layer():
    im = ramp(2, 2, 3)
    layer = get_image_layer(im, 2)
    assert layer.c == 1
    assert np.array_equal(layer.data, im.pixels[2].reshape(-1))
    with pytest.raises(IndexError):
        get_image_layer(im, 3)


def test_collapse_image_layers():
    im = ramp(2, 2, 3)
    out = collapse_image_layers(im, 1)
    assert (out.w, out.h, out.c) == (2, (2 + 1) * 3 - 1, 1)
    assert np.array_equal(out.pixels[0, 3:5], im.pixels[1])


def test_collapse_images_vert_rgb():
    ims = [ramp(2, 2, 3), ramp(2, 2, 3)]
    out = collapse_images_vert(ims)
    assert (out.w, out.h, out.c) == (2, 5, 3)
    assert np.array_equal(out.pixels[:, 3:5, :], ims[1].pixels)


def test_collapse_images_vert_gray_lays_channels_side_by_side():
    ims = [ramp(2, 2, 2)]
    out = collapse_images_vert(ims)
    assert (out.w, out.h, out.c) == (5, 2, 1)
    assert np.array_equal(out.pixels[0, :, 3:5], ims[0].pixels[1])


def test_collapse_images_horz():
    ims = [ramp(2, 2, 3), ramp(2, 2, 3)]
    out = collapse_images_horz(ims)
    assert (out.w, out.h, out.c) == (5, 2, 3)
    assert np.array_equal(out.pixels[:, :, 3:5], ims[1].pixels)
    with pytest.raises(ValueError):
        collapse_images_horz([])


def test_border_image():
    a = ramp(2, 2, 1)
    b = border_image(a, 1)
    assert (b.w, b.h) == (4, 4)
    assert b.get_pixel(0, 0, 0) == 1.0
    assert np.array_equal(b.pixels[0, 1:3, 1:3], a.pixels[0])


def test_tile_images():
    empty = make_empty_image(0, 0, 0)
    b = ramp(2, 2, 1)
    same = tile_images(empty, b, 0)
    assert np.array_equal(same.data, b.data)
    assert same.data is not b.data
    a = ramp(3, 1, 1)
    tiled = tile_images(a, b, 1)
    assert (tiled.w, tiled.h, tiled.c) == (6, 2, 1)
    assert tiled.get_pixel(3, 0, 0) == 1.0
    assert tiled.pixels[0, :, 4:6] == pytest.approx(b.pixels[0])


def test_threshold_and_binarize():
    im = float_to_image(2, 2, 1, [0.1, 0.6, 0.5, 0.9])
    t = threshold_image(im, 0.55)
    assert list(t.data) == [0.0, 1.0, 0.0, 1.0]
    bi = binarize_image(im)
    assert list(bi.data) == [0.0, 1.0, 0.0, 1.0]


def test_blend():
    fore = ramp(2, 2, 1)
    back = make_image(2, 2, 1)
    assert blend_image(fore, back, 1.0).data == pytest.approx(fore.data)
    assert blend_image(fore, back, 0.0).data == pytest.approx(back.data)
    with pytest.raises(ValueError):
        blend_image(fore, make_image(3, 2, 1), 0.5)


def test_image_distance():
    a = ramp(2, 2, 3)
    assert not image_distance(a, a).data.any()
    b = make_random_image(2, 2, 3, np.random.default_rng(1))
    assert image_distance(a, b).data == pytest.approx(image_distance(b, a).data)
    single = float_to_image(2, 1, 1, [0.25, 0.75])
    zero = make_image(2, 1, 1)
    assert image_distance(single, zero).data == pytest.approx(single.data)


def test_format_image():
    im = float_to_image(1, 1, 1, [0.5])
    assert format_image(im) == "0.50, \n\n\n"


def test_format_image_truncates_to_32():
    im = make_image(40, 40, 1)
    lines = format_image(im).split("\n")
    assert lines[0].count(",") == 32
    assert sum(1 for line in lines if line) == 32