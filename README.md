# dnetkit

Building blocks for a small darknet-style neural network toolkit, written in
Python with NumPy.

## Modules

- `dnetkit.image`: planar float images (`Image`, stored channel-major) with
  cropping, resizing (`resize_image`, `resize_max`, `resize_min`),
  letterboxing, rotation, embedding, tiling, thresholding, blending and
  normalisation.
- `dnetkit.color`: RGB/HSV/YUV conversions, grayscale, and the saturation,
  exposure and hue adjustments used for data augmentation
  (`distort_image`, `saturate_exposure_image`, ...).
- `dnetkit.draw`: drawing boxes, labels and detections (`Box`, `Detection`,
  `draw_box`, `draw_bbox`, `draw_detections`), plus `ghost_image`,
  `blocky_image` and `censor_image`.
- `dnetkit.im2col`: `im2col`, unrolling image patches into a column matrix.
- `dnetkit.matrix`: a row-oriented `Matrix` (scale, resize, add, hold out
  rows, pop a column) and `matrix_topk_accuracy`.
- `dnetkit.options`: ordered `key=value` option lists (`Option`,
  `OptionList`) with lenient integer and float lookups and tracking of
  unused options.
- `dnetkit.config`: section names to `LayerType`, learning-rate policy
  names, parsing of the `[net]` section into `NetOptions`, comma-separated
  number lists and route layer output shapes.
- `dnetkit.network`: `LayerType`, `LearningRatePolicy`, the learning-rate
  `Schedule`, `network_cost`, `predicted_class` and `compare_predictions`
  (McNemar's test between two classifiers).
- `dnetkit.maxpool`: `MaxpoolLayer` with forward, backward and resize.
- `dnetkit.iseg`: `IsegLayer`, an instance segmentation layer with an
  embedding loss.
- `dnetkit.weights`: reading and writing weights file headers
  (`WeightsHeader`), float arrays and packed binary filters.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
import io

import numpy as np

from dnetkit.config import parse_net_options
from dnetkit.image import letterbox_image, make_image
from dnetkit.maxpool import MaxpoolLayer
from dnetkit.options import OptionList
from dnetkit.weights import read_header, write_header

im = make_image(4, 2, 3)
boxed = letterbox_image(im, 8, 8)    # 8x8, padded with 0.5

layer = MaxpoolLayer(batch=1, h=4, w=4, c=1, size=2, stride=2, pad=0)
out = layer.forward(np.arange(16, dtype=np.float32))   # [5, 7, 13, 15]

options = OptionList()
options.read_option("batch=64")
options.read_option("width=416")
options.read_option("height=416")
options.read_option("channels=3")
net = parse_net_options(options)
net.batch                            # 64
net.schedule.current_rate(seen=0)    # 0.001

buffer = io.BytesIO()
write_header(buffer, seen=1280)
buffer.seek(0)
read_header(buffer).seen             # 1280
```

## What the package does not do

There is no command-line tool, and no reader that turns a whole network
description file into sections: `Section` and `OptionList` are filled by the
caller, line by line through `OptionList.read_option`. The package does not
build or train complete networks, and has no convolutional, connected,
recurrent or local response normalization layers; the weights module reads
and writes the file format's pieces but does not assign them to layers.