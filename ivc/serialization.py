"""
최종 증명 직렬화/역직렬화 헬퍼
================================

FinalProof를 경계에서 주고받는 불투명한 바이트열로 변환한다.

  FinalProof → dict (JSON 호환) → UTF-8 JSON 바이트

  - FR: 10진수 문자열
  - G1: [x, y] 문자열 쌍, 무한원점은 None
  - 형식 태그 "format"으로 버전을 구분한다

역직렬화는 값의 모양만 확인한다. 점이 곡선 위에 있는지는 검증자가
따로 확인한다 (is_on_g1).
"""

import json

from py_ecc.fields import bn128_FQ as FQ

from ivc.field import FR, CURVE_ORDER, FIELD_MODULUS
from ivc.folding import RelaxedInstance
from ivc.decider import LinkProof
from ivc.plonk.prover import Proof


FORMAT = "ivc-final-proof/1"


# ─── FR ───

def serialize_fr(val):
    """FR → str(int)"""
    return str(int(val))


def deserialize_fr(s):
    """str(int) → FR. 범위 밖이면 ValueError."""
    if not isinstance(s, str):
        raise ValueError(f"필드 원소는 문자열이어야 합니다: {s!r}")
    value = int(s)
    if not 0 <= value < CURVE_ORDER:
        raise ValueError(f"필드 원소가 범위를 벗어났습니다: {s}")
    return FR(value)


def serialize_fr_list(lst):
    """list[FR] → list[str]"""
    return [serialize_fr(v) for v in lst]


def deserialize_fr_list(data):
    """list[str] → list[FR]"""
    if not isinstance(data, list):
        raise ValueError("필드 원소 리스트가 아닙니다")
    return [deserialize_fr(s) for s in data]


# ─── G1 point ───

def serialize_g1(point):
    """G1 point → [str, str] or None"""
    if point is None:
        return None
    return [str(int(point[0])), str(int(point[1]))]


def deserialize_g1(data):
    """[str, str] or None → G1 point"""
    if data is None:
        return None
    if not isinstance(data, list) or len(data) != 2:
        raise ValueError(f"G1 점 형식이 아닙니다: {data!r}")
    coords = []
    for s in data:
        if not isinstance(s, str):
            raise ValueError(f"G1 좌표는 문자열이어야 합니다: {s!r}")
        value = int(s)
        if not 0 <= value < FIELD_MODULUS:
            raise ValueError(f"G1 좌표가 범위를 벗어났습니다: {s}")
        coords.append(FQ(value))
    return tuple(coords)


# ─── 정수 상태 ───

def deserialize_state(data):
    """list[str] → 정수 튜플 (음수 불가)"""
    if not isinstance(data, list):
        raise ValueError("상태는 리스트여야 합니다")
    values = []
    for s in data:
        if not isinstance(s, str):
            raise ValueError(f"상태 값은 문자열이어야 합니다: {s!r}")
        value = int(s)
        if value < 0:
            raise ValueError(f"상태 값이 음수입니다: {s}")
        values.append(value)
    return tuple(values)


# ─── RelaxedInstance ───

def serialize_instance(instance):
    return {
        "comm_w": serialize_g1(instance.comm_w),
        "comm_e": serialize_g1(instance.comm_e),
        "u": serialize_fr(instance.u),
        "x": serialize_fr_list(instance.x),
    }


def deserialize_instance(data):
    if not isinstance(data, dict):
        raise ValueError("인스턴스는 객체여야 합니다")
    return RelaxedInstance(
        deserialize_g1(data["comm_w"]),
        deserialize_g1(data["comm_e"]),
        deserialize_fr(data["u"]),
        deserialize_fr_list(data["x"]),
    )


# ─── Proof / LinkProof ───

def _serialize_fields(obj):
    result = {}
    for name in obj.POINTS:
        result[name] = serialize_g1(getattr(obj, name))
    for name in obj.SCALARS:
        result[name] = serialize_fr(getattr(obj, name))
    return result


def serialize_plonk_proof(proof):
    """Proof → dict"""
    return _serialize_fields(proof)


def deserialize_plonk_proof(data):
    """dict → Proof"""
    if not isinstance(data, dict):
        raise ValueError("PLONK 증명은 객체여야 합니다")
    proof = Proof()
    for name in Proof.POINTS:
        setattr(proof, name, deserialize_g1(data[name]))
    for name in Proof.SCALARS:
        setattr(proof, name, deserialize_fr(data[name]))
    return proof


def serialize_link_proof(link):
    """LinkProof → dict"""
    return _serialize_fields(link)


def deserialize_link_proof(data):
    """dict → LinkProof"""
    if not isinstance(data, dict):
        raise ValueError("연결 증명은 객체여야 합니다")
    fields = {name: deserialize_g1(data[name]) for name in LinkProof.POINTS}
    fields.update({name: deserialize_fr(data[name]) for name in LinkProof.SCALARS})
    return LinkProof(**fields)


# ─── FinalProof ───

def serialize_final_proof(proof):
    """FinalProof → dict"""
    return {
        "format": FORMAT,
        "name": proof.name,
        "size": proof.size,
        "num_steps": proof.num_steps,
        "z0": [str(v) for v in proof.z0],
        "zn": [str(v) for v in proof.zn],
        "left": serialize_instance(proof.left),
        "right": serialize_instance(proof.right),
        "cross_comm": serialize_g1(proof.cross_comm),
        "blind": serialize_instance(proof.blind),
        "blind_cross_comm": serialize_g1(proof.blind_cross_comm),
        "plonk": serialize_plonk_proof(proof.plonk),
        "link": serialize_link_proof(proof.link),
    }


def deserialize_final_proof_fields(data):
    """dict → FinalProof 생성자 인자.

    Raises:
        ValueError: 형식 태그가 다르거나 필드가 없거나 값이 잘못되었을 때
    """
    if not isinstance(data, dict):
        raise ValueError("최종 증명은 객체여야 합니다")
    if data.get("format") != FORMAT:
        raise ValueError(f"알 수 없는 증명 형식: {data.get('format')!r}")
    try:
        name = data["name"]
        size = data["size"]
        num_steps = data["num_steps"]
        if not isinstance(name, str):
            raise ValueError("name은 문자열이어야 합니다")
        for key, value in (("size", size), ("num_steps", num_steps)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{key}는 정수여야 합니다")
        return {
            "name": name,
            "size": size,
            "num_steps": num_steps,
            "z0": deserialize_state(data["z0"]),
            "zn": deserialize_state(data["zn"]),
            "left": deserialize_instance(data["left"]),
            "right": deserialize_instance(data["right"]),
            "cross_comm": deserialize_g1(data["cross_comm"]),
            "blind": deserialize_instance(data["blind"]),
            "blind_cross_comm": deserialize_g1(data["blind_cross_comm"]),
            "plonk": deserialize_plonk_proof(data["plonk"]),
            "link": deserialize_link_proof(data["link"]),
        }
    except KeyError as exc:
        raise ValueError(f"증명에 필드가 없습니다: {exc}") from None


def encode(proof):
    """FinalProof → bytes"""
    return json.dumps(serialize_final_proof(proof), sort_keys=True).encode("utf-8")


def decode_fields(data):
    """bytes → FinalProof 생성자 인자.

    Raises:
        ValueError: UTF-8/JSON 해석 실패 또는 형식 오류
    """
    if not isinstance(data, (bytes, bytearray)):
        raise ValueError("증명은 바이트열이어야 합니다")
    try:
        parsed = json.loads(bytes(data).decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise ValueError(f"UTF-8이 아닙니다: {exc}") from None
    return deserialize_final_proof_fields(parsed)
