import numpy as np
import pytest

from oceaneye.yolov8 import (
    BOX_COLOR,
    MODEL_CLASSES,
    Annotation,
    Box,
    YOLOv8,
    draw_detections,
    format_to_square,
    load_classes,
    nms_boxes,
    parse_class_names,
)

NAMES = b"{0: 'Kelp', 1: 'Sea Urchin'}"


def _metadata(text: bytes) -> bytes:
    return b"\x08\x07junk" + b"names\x12" + bytes([len(text)]) + text + b"\x00\x01"


def test_parse_class_names_reads_dictionary():
    assert parse_class_names(_metadata(NAMES)) == {0: "Kelp", 1: "Sea Urchin"}


def test_parse_class_names_without_metadata_is_empty():
    assert parse_class_names(b"no metadata in here") == {}


def test_parse_class_names_rejects_missing_key():
    with pytest.raises(ValueError):
        parse_class_names(_metadata(b"{: 'Kelp'}"))


def test_load_classes_from_file(tmp_path):
    model = tmp_path / "model.onnx"
    model.write_bytes(_metadata(NAMES))
    assert load_classes(model) == {0: "Kelp", 1: "Sea Urchin"}


def test_load_classes_missing_file_raises(tmp_path):
    with pytest.raises(OSError):
        load_classes(tmp_path / "absent.onnx")


def test_box_normalized_is_idempotent_and_positive():
    box = Box(10, 10, -5, -5)
    normal = box.normalized()
    assert normal.width > 0 and normal.height > 0
    assert normal.normalized() == normal
    assert Box(1, 2, 3, 4).normalized() == Box(1, 2, 3, 4)


def test_box_edge_setters_keep_opposite_edge():
    box = Box(10, 10, 20, 20)
    box.right = 40
    assert box.right == 40 and box.left == 10
    bottom = box.bottom
    box.top = 0
    assert box.top == 0 and box.bottom == bottom


def test_box_contains_is_strict():
    box = Box(0, 0, 10, 10)
    assert box.contains(5, 5)
    assert not box.contains(0, 5)
    assert not box.contains(box.right, 5)
    assert not box.contains(20, 20)


def test_nms_suppresses_overlapping_box():
    boxes = [Box(0, 0, 10, 10), Box(0, 0, 10, 10)]
    assert nms_boxes(boxes, [0.9, 0.8], 0.5, 0.5) == [0]


def test_nms_orders_by_score_and_filters():
    boxes = [Box(0, 0, 10, 10), Box(50, 50, 10, 10), Box(100, 100, 5, 5)]
    kept = nms_boxes(boxes, [0.6, 0.9, 0.1], 0.5, 0.5)
    assert kept == [1, 0]


def test_nms_length_mismatch():
    with pytest.raises(ValueError):
        nms_boxes([Box()], [], 0.1, 0.5)


def test_format_to_square_pads_with_zeros():
    image = np.full((2, 4, 3), 7, dtype=np.uint8)
    square = format_to_square(image)
    assert square.shape == (4, 4, 3)
    assert np.array_equal(square[:2], image)
    assert not square[2:].any()


def _v8_output(columns):
    output = np.zeros((1, 4 + len(MODEL_CLASSES), 20), dtype=np.float32)
    for index, (x, y, w, h, class_id, score) in enumerate(columns):
        output[0, :4, index] = (x, y, w, h)
        output[0, 4 + class_id, index] = score
    return output


def test_decode_v8_output():
    model = YOLOv8()
    result = model.decode_outputs(_v8_output([(320, 320, 100, 50, 2, 0.9)]), 640, 640)
    assert len(result) == 1
    annotation = result[0]
    assert annotation.class_id == 2
    assert annotation.class_name == MODEL_CLASSES[2]
    assert annotation.confidence == pytest.approx(0.9)
    assert (annotation.box.width, annotation.box.height) == (100, 50)
    assert annotation.box.x + annotation.box.width // 2 == 320
    assert annotation.box.y + annotation.box.height // 2 == 320


def test_decode_v8_below_threshold_is_empty():
    model = YOLOv8()
    assert model.decode_outputs(_v8_output([(320, 320, 100, 50, 1, 0.3)]), 640, 640) == []


def test_decode_v8_applies_nms():
    model = YOLOv8()
    output = _v8_output([(100, 100, 40, 40, 0, 0.7), (101, 101, 40, 40, 0, 0.95)])
    result = model.decode_outputs(output, 640, 640)
    assert len(result) == 1
    assert result[0].confidence == pytest.approx(0.95)


def test_decode_v5_output_uses_objectness():
    model = YOLOv8()
    output = np.zeros((1, 20, 5 + len(MODEL_CLASSES)), dtype=np.float32)
    output[0, 0, :5] = (100, 100, 20, 20, 0.8)
    output[0, 0, 5 + 1] = 0.7
    output[0, 1, :5] = (300, 300, 20, 20, 0.1)
    output[0, 1, 5 + 3] = 0.9
    result = model.decode_outputs(output, 640, 640)
    assert [a.class_id for a in result] == [1]
    assert result[0].confidence == pytest.approx(0.8)


def test_decode_rejects_bad_shape():
    with pytest.raises(ValueError):
        YOLOv8().decode_outputs(np.zeros((5, 5)), 640, 640)


def test_run_inference_without_model_is_empty():
    assert YOLOv8().run_inference(np.zeros((8, 8, 3), dtype=np.uint8)) == []


def test_load_network_missing_file(tmp_path):
    model = YOLOv8(tmp_path / "absent.onnx", forward=lambda blob: blob)
    model.load_network()
    assert model.loaded is False


def test_load_network_without_backend(tmp_path):
    path = tmp_path / "model.onnx"
    path.write_bytes(_metadata(NAMES))
    model = YOLOv8(path)
    model.load_network()
    assert model.loaded is False


def test_run_inference_with_forward(tmp_path):
    path = tmp_path / "model.onnx"
    path.write_bytes(_metadata(NAMES))
    output = _v8_output([(16, 16, 8, 8, 0, 0.9)])
    blobs = []

    def forward(blob):
        blobs.append(blob)
        return [output]

    model = YOLOv8(path, (32, 32), forward)
    model.load_network()
    assert model.loaded is True
    assert model.class_map == {0: "Kelp", 1: "Sea Urchin"}

    image = np.full((48, 64, 3), 200, dtype=np.uint8)
    result = model.run_inference(image)
    assert blobs[0].shape == (1, 3, 32, 32)
    assert blobs[0].dtype == np.float32
    assert float(blobs[0].max()) <= 1.0
    assert result == model.decode_outputs(output, 64, 64)
    assert len(result) == 1


def test_draw_detections_marks_box_edge():
    image = np.zeros((100, 100, 3), dtype=np.uint8)
    annotation = Annotation(0, "Kelp", 0.5, Box(20, 50, 30, 30))
    returned = draw_detections([annotation], image)
    assert returned is image
    assert tuple(image[60, 20]) == BOX_COLOR
    assert not image[70, 35].any()