"""
폴딩용 벡터 커밋먼트 (Vector Commitment)
==========================================

Com(v) = Σ vᵢ·Pᵢ,  Pᵢ = [L_{rowᵢ}(τ)]₁

  - 동형성: Com(v₁) + r·Com(v₂) = Com(v₁ + r·v₂)
    폴딩이 W = W₁ + r·W₂ 를 커밋먼트 위에서 그대로 따라갈 수 있다.
  - 결정자 연결: Com(W)는 결정자 회로에서 W 행들의 a 배선에 W를 놓은
    다항식 w(X)의 KZG 커밋먼트와 같다.

witness 벡터 W와 error 벡터 E는 서로 다른 행 집합을 쓴다.
"""

from ivc.field import msm


class CommitmentKey:
    """W와 E 벡터를 커밋하는 기저 점들.

    속성:
        w_points: W 슬롯마다 [L_row(τ)]₁
        e_points: E 슬롯(제약 행)마다 [L_row(τ)]₁
    """

    def __init__(self, w_points, e_points):
        self.w_points = list(w_points)
        self.e_points = list(e_points)

    @classmethod
    def from_srs(cls, srs, w_rows, e_rows):
        """SRS의 Lagrange 점에서 키를 만든다.

        Raises:
            ValueError: SRS에 필요한 행의 Lagrange 점이 없을 때
        """
        missing = [row for row in list(w_rows) + list(e_rows)
                   if row not in srs.lagrange_points]
        if missing:
            raise ValueError(f"SRS에 Lagrange 점이 없는 행: {missing[:5]}")
        return cls(
            [srs.lagrange_points[row] for row in w_rows],
            [srs.lagrange_points[row] for row in e_rows],
        )

    def commit_witness(self, values):
        if len(values) != len(self.w_points):
            raise ValueError(
                f"witness 길이 {len(values)}가 키 길이 {len(self.w_points)}와 다릅니다"
            )
        return msm(self.w_points, values)

    def commit_error(self, values):
        if len(values) != len(self.e_points):
            raise ValueError(
                f"error 길이 {len(values)}가 키 길이 {len(self.e_points)}와 다릅니다"
            )
        return msm(self.e_points, values)
