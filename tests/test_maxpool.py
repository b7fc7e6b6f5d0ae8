import numpy as np
import pytest

from dnetkit.maxpool import MaxpoolLayer


def _layer(**kw):
    params = dict(batch=1, h=4, w=4, c=1, size=2, stride=2, pad=0)
    params.update(kw)
    return MaxpoolLayer(**params)


def test_shape_follows_formula():
    layer = _layer(pad=1)
    assert (layer.out_w, layer.out_h, layer.out_c) == (2, 2, 1)
    assert layer.outputs == 4
    assert layer.inputs == 16
    assert layer.output.size == 4


def test_forward_on_ramp():
    layer = _layer()
    out = layer.forward(np.arange(16, dtype=np.float32))
    np.testing.assert_array_equal(out, [5, 7, 13, 15])


def test_indexes_point_at_maxima():
    rng = np.random.default_rng(0)
    layer = _layer(batch=2, c=3, h=6, w=6, size=3, stride=2, pad=2)
    data = rng.standard_normal(2 * 3 * 36).astype(np.float32)
    out = layer.forward(data)
    np.testing.assert_array_equal(data[layer.indexes], out)
    assert (layer.indexes >= 0).all()


def test_output_not_below_window_values():
    rng = np.random.default_rng(1)
    layer = _layer()
    data = rng.standard_normal(16).astype(np.float32)
    layer.forward(data)
    grid = data.reshape(4, 4)
    out = layer.output.reshape(2, 2)
    for i in range(2):
        for j in range(2):
            window = grid[2 * i : 2 * i + 2, 2 * j : 2 * j + 2]
            assert out[i, j] >= window.max()
            assert out[i, j] in window


def test_backward_routes_delta_to_winners():
    rng = np.random.default_rng(2)
    layer = _layer(size=3, stride=1, pad=2)
    data = rng.standard_normal(16).astype(np.float32)
    layer.forward(data)
    layer.delta[:] = rng.standard_normal(layer.delta.size)
    net_delta = np.zeros(16, dtype=np.float32)
    layer.backward(net_delta)
    assert net_delta.sum() == pytest.approx(layer.delta.sum(), abs=1e-5)
    untouched = np.setdiff1d(np.arange(16), layer.indexes)
    assert (net_delta[untouched] == 0).all()


def test_short_input_raises():
    layer = _layer()
    with pytest.raises(ValueError):
        layer.forward(np.zeros(10, dtype=np.float32))


def test_invalid_stride_raises():
    with pytest.raises(ValueError):
        _layer(stride=0)


def test_resize_updates_shapes():
    layer = _layer()
    layer.resize(8, 6)
    assert (layer.w, layer.h) == (8, 6)
    assert (layer.out_w, layer.out_h) == (4, 3)
    assert layer.output.size == layer.outputs * layer.batch
    out = layer.forward(np.arange(48, dtype=np.float32))
    assert out.size == 12


def test_images_wrap_buffers():
    layer = _layer(c=2)
    layer.forward(np.arange(32, dtype=np.float32))
    image = layer.output_image()
    assert (image.w, image.h, image.c) == (2, 2, 2)
    np.testing.assert_array_equal(image.data, layer.output)
    layer.delta[:] = 1.0
    assert layer.delta_image().get_pixel(1, 1, 1) == 1.0