"""
Fiat-Shamir Transcript
======================

폴딩 챌린지 r, 블라인딩 챌린지 r_b, PLONK 챌린지(β, γ, α, ζ, v, u),
연결 증명 챌린지(ζ', η)를 모두 같은 SHA-256 트랜스크립트로 만든다.

**왜 해시로 챌린지를 만드는가?**
  NIFS(non-interactive folding)에서 r은 두 인스턴스와 교차항 커밋먼트 T̄가
  정해진 "뒤에" 뽑혀야 한다. 그래야 Prover가 r을 보고 witness를
  조작할 수 없다. Prover와 Verifier가 같은 순서로 같은 데이터를 넣으면
  같은 챌린지를 얻는다.

사용 예시:
    >>> t = Transcript(b"ivc-nifs")
    >>> t.append_point(b"T", cross_commitment)
    >>> r = t.challenge_scalar(b"r")
"""

import hashlib

from ivc.field import FR, CURVE_ORDER


class Transcript:
    """SHA-256 기반 Fiat-Shamir 트랜스크립트.

    속성:
        state: 지금까지 누적된 해시 입력 바이트열

    보안 주의:
        - 모든 데이터는 레이블과 함께 추가하여 도메인 분리를 보장한다.
        - 챌린지는 생성 즉시 상태에 다시 추가된다 (체이닝).
    """

    def __init__(self, label=b"ivc"):
        self.state = bytearray()
        self.append_bytes(b"init", label)

    def append_bytes(self, label, data):
        """길이 접두사가 붙은 임의 바이트열을 추가한다."""
        self.state.extend(label)
        self.state.extend(len(data).to_bytes(8, "big"))
        self.state.extend(data)

    def append_int(self, label, value):
        """음이 아닌 정수(스텝 번호 등)를 추가한다."""
        self.append_bytes(label, str(int(value)).encode())

    def append_scalar(self, label, scalar):
        """FR 스칼라를 32바이트 빅엔디안으로 추가한다."""
        self.state.extend(label)
        val = int(scalar) % CURVE_ORDER
        self.state.extend(val.to_bytes(32, "big"))

    def append_scalars(self, label, scalars):
        """스칼라 벡터를 길이와 함께 추가한다."""
        self.append_int(label, len(scalars))
        for s in scalars:
            self.append_scalar(label, s)

    def append_point(self, label, point):
        """G1 점을 추가한다. 무한원점(None)은 64바이트의 0."""
        self.state.extend(label)
        if point is None:
            self.state.extend(b"\x00" * 64)
        else:
            x, y = point
            self.state.extend(int(x).to_bytes(32, "big"))
            self.state.extend(int(y).to_bytes(32, "big"))

    def challenge_scalar(self, label):
        """현재 상태를 해싱하여 FR 챌린지를 만든다.

        예시:
            >>> beta = t.challenge_scalar(b"beta")
            >>> gamma = t.challenge_scalar(b"gamma")   # beta와 다름
        """
        self.state.extend(label)
        h = hashlib.sha256(bytes(self.state)).digest()
        self.state.extend(h)
        return FR(int.from_bytes(h, "big") % CURVE_ORDER)
