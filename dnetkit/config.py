"""Reading network descriptions: section kinds, the ``[net]`` options and route shapes."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from dnetkit.network import LayerType, LearningRatePolicy, Schedule
from dnetkit.options import OptionList, _atof, _atoi

_SECTION_TYPES = {
    "[shortcut]": LayerType.SHORTCUT,
    "[crop]": LayerType.CROP,
    "[cost]": LayerType.COST,
    "[detection]": LayerType.DETECTION,
    "[region]": LayerType.REGION,
    "[yolo]": LayerType.YOLO,
    "[iseg]": LayerType.ISEG,
    "[local]": LayerType.LOCAL,
    "[conv]": LayerType.CONVOLUTIONAL,
    "[convolutional]": LayerType.CONVOLUTIONAL,
    "[deconv]": LayerType.DECONVOLUTIONAL,
    "[deconvolutional]": LayerType.DECONVOLUTIONAL,
    "[activation]": LayerType.ACTIVE,
    "[logistic]": LayerType.LOGXENT,
    "[l2norm]": LayerType.L2NORM,
    "[net]": LayerType.NETWORK,
    "[network]": LayerType.NETWORK,
    "[crnn]": LayerType.CRNN,
    "[gru]": LayerType.GRU,
    "[lstm]": LayerType.LSTM,
    "[rnn]": LayerType.RNN,
    "[conn]": LayerType.CONNECTED,
    "[connected]": LayerType.CONNECTED,
    "[max]": LayerType.MAXPOOL,
    "[maxpool]": LayerType.MAXPOOL,
    "[reorg]": LayerType.REORG,
    "[avg]": LayerType.AVGPOOL,
    "[avgpool]": LayerType.AVGPOOL,
    "[dropout]": LayerType.DROPOUT,
    "[lrn]": LayerType.NORMALIZATION,
    "[normalization]": LayerType.NORMALIZATION,
    "[batchnorm]": LayerType.BATCHNORM,
    "[soft]": LayerType.SOFTMAX,
    "[softmax]": LayerType.SOFTMAX,
    "[route]": LayerType.ROUTE,
    "[upsample]": LayerType.UPSAMPLE,
}

_POLICIES = {
    "random": LearningRatePolicy.RANDOM,
    "poly": LearningRatePolicy.POLY,
    "constant": LearningRatePolicy.CONSTANT,
    "step": LearningRatePolicy.STEP,
    "exp": LearningRatePolicy.EXP,
    "sigmoid": LearningRatePolicy.SIG,
    "steps": LearningRatePolicy.STEPS,
}


@dataclass
class Section:
    """One bracketed section of a network description and its options."""

    type: str
    options: OptionList = field(default_factory=OptionList)


def string_to_layer_type(type_name: str) -> LayerType:
    """The layer kind named by a section header such as ``[conv]``; BLANK if unknown."""
    return _SECTION_TYPES.get(type_name, LayerType.BLANK)


def get_policy(name: str) -> LearningRatePolicy:
    """The learning-rate policy called ``name``; CONSTANT if unknown."""
    return _POLICIES.get(name, LearningRatePolicy.CONSTANT)


def is_network(section: Section) -> bool:
    """Whether ``section`` is the ``[net]`` (or ``[network]``) header section."""
    return section.type in ("[net]", "[network]")


def parse_int_list(text: str) -> list[int]:
    """Comma separated integers, each parsed leniently from its leading digits."""
    return [_atoi(part) for part in text.split(",")]


def parse_float_list(text: str) -> list[float]:
    """Comma separated floats, each parsed leniently from its leading number."""
    return [_atof(part) for part in text.split(",")]


def _ratio(a: float, b: float) -> float:
    if b == 0:
        return math.nan if a == 0 else math.copysign(math.inf, a)
    return a / b


@dataclass
class NetOptions:
    """Global settings read from the ``[net]`` section."""

    batch: int = 1
    learning_rate: float = 0.001
    momentum: float = 0.9
    decay: float = 0.0001
    subdivisions: int = 1
    time_steps: int = 1
    notruth: int = 0
    random: int = 0
    adam: int = 0
    B1: float = 0.0
    B2: float = 0.0
    eps: float = 0.0
    h: int = 0
    w: int = 0
    c: int = 0
    inputs: int = 0
    max_crop: int = 0
    min_crop: int = 0
    max_ratio: float = 0.0
    min_ratio: float = 0.0
    center: int = 0
    clip: float = 0.0
    angle: float = 0.0
    aspect: float = 1.0
    saturation: float = 1.0
    exposure: float = 1.0
    hue: float = 0.0
    policy: LearningRatePolicy = LearningRatePolicy.CONSTANT
    burn_in: int = 0
    power: float = 4.0
    step: int = 0
    scale: float = 0.0
    steps: tuple[int, ...] = ()
    scales: tuple[float, ...] = ()
    gamma: float = 0.0
    max_batches: int = 0

    @property
    def schedule(self) -> Schedule:
        """The learning-rate schedule these options describe."""
        return Schedule(
            learning_rate=self.learning_rate,
            policy=self.policy,
            batch=self.batch,
            subdivisions=self.subdivisions,
            burn_in=self.burn_in,
            power=self.power,
            step=self.step,
            scale=self.scale,
            steps=self.steps,
            scales=self.scales,
            gamma=self.gamma,
            max_batches=self.max_batches,
        )


def _truncdiv(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def parse_net_options(options: OptionList) -> NetOptions:
    """Read the ``[net]`` section options; raise ValueError when they are unusable."""
    net = NetOptions()
    batch = options.find_int("batch", 1)
    net.learning_rate = options.find_float("learning_rate", 0.001)
    net.momentum = options.find_float("momentum", 0.9)
    net.decay = options.find_float("decay", 0.0001)
    subdivs = options.find_int("subdivisions", 1)
    net.time_steps = options.find_int("time_steps", 1)
    net.notruth = options.find_int("notruth", 0)
    if subdivs == 0:
        raise ValueError("subdivisions must not be zero")
    net.batch = _truncdiv(batch, subdivs) * net.time_steps
    net.subdivisions = subdivs
    net.random = options.find_int("random", 0)

    net.adam = options.find_int("adam", 0)
    if net.adam:
        net.B1 = options.find_float("B1", 0.9)
        net.B2 = options.find_float("B2", 0.999)
        net.eps = options.find_float("eps", 0.0000001)

    net.h = options.find_int("height", 0)
    net.w = options.find_int("width", 0)
    net.c = options.find_int("channels", 0)
    net.inputs = options.find_int("inputs", net.h * net.w * net.c)
    net.max_crop = options.find_int("max_crop", net.w * 2)
    net.min_crop = options.find_int("min_crop", net.w)
    net.max_ratio = options.find_float("max_ratio", _ratio(net.max_crop, net.w))
    net.min_ratio = options.find_float("min_ratio", _ratio(net.min_crop, net.w))
    net.center = options.find_int("center", 0)
    net.clip = options.find_float("clip", 0)

    net.angle = options.find_float("angle", 0)
    net.aspect = options.find_float("aspect", 1)
    net.saturation = options.find_float("saturation", 1)
    net.exposure = options.find_float("exposure", 1)
    net.hue = options.find_float("hue", 0)

    if not net.inputs and not (net.h and net.w and net.c):
        raise ValueError("No input parameters supplied")

    net.policy = get_policy(options.find_str("policy", "constant"))
    net.burn_in = options.find_int("burn_in", 0)
    net.power = options.find_float("power", 4)

    if net.policy is LearningRatePolicy.STEP:
        net.step = options.find_int("step", 1)
        net.scale = options.find_float("scale", 1)
    elif net.policy is LearningRatePolicy.STEPS:
        steps_text = options.find("steps")
        scales_text = options.find("scales")
        if steps_text is None or scales_text is None:
            raise ValueError("STEPS policy must have steps and scales in cfg file")
        steps = parse_int_list(steps_text)
        scales = parse_float_list(scales_text)
        if len(scales) < len(steps):
            raise ValueError("STEPS policy needs a scale for every step")
        net.steps = tuple(steps)
        net.scales = tuple(scales[: len(steps)])
    elif net.policy is LearningRatePolicy.EXP:
        net.gamma = options.find_float("gamma", 1)
    elif net.policy is LearningRatePolicy.SIG:
        net.gamma = options.find_float("gamma", 1)
        net.step = options.find_int("step", 1)
    net.max_batches = options.find_int("max_batches", 0)
    return net


def route_output_shape(
    layers: Sequence[int], shapes: Sequence[tuple[int, int, int]]
) -> tuple[int, int, int]:
    """Output ``(w, h, c)`` of a route layer joining the listed layers.

    ``shapes`` holds the ``(out_w, out_h, out_c)`` of the layers before the
    route, so a negative index counts back from the route layer. Layers whose
    width and height match the first are stacked along channels; a mismatch
    resets the shape to zero.
    """
    if not layers:
        raise ValueError("Route Layer must specify input layers")
    first_w, first_h, first_c = shapes[layers[0]]
    w, h, c = first_w, first_h, first_c
    for index in layers[1:]:
        next_w, next_h, next_c = shapes[index]
        if next_w == first_w and next_h == first_h:
            c += next_c
        else:
            w = h = c = 0
    return w, h, c