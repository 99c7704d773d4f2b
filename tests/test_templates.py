"""
Tests for the feature template codec and similarity.
"""

import pytest
import numpy as np

from facegate.biometrics import decode_template, encode_template, template_similarity
from facegate.errors import FeatureDecodeError


class TestTemplateCodec:
    """Test template serialization"""
    
    def test_encode_decode(self):
        template = encode_template(np.array([0.25, -0.5, 1.0], dtype=np.float32))
        assert isinstance(template, str)
        np.testing.assert_allclose(decode_template(template), [0.25, -0.5, 1.0])
    
    @pytest.mark.parametrize('corrupt', ['', 'not json', '{"a": 1}', '[]', '[[1, 2], [3, 4]]', '["x", "y"]', '[1, NaN]'])
    def test_corrupt_template_raises(self, corrupt):
        with pytest.raises(FeatureDecodeError):
            decode_template(corrupt)


class TestTemplateSimilarity:
    """Test cosine similarity in [0, 1]"""
    
    def test_identical_templates_score_one(self):
        template = encode_template(np.random.RandomState(7).normal(size=512))
        assert template_similarity(template, template) == 1.0
    
    def test_orthogonal_templates_score_zero(self):
        assert template_similarity(encode_template([1, 0]), encode_template([0, 1])) == 0.0
    
    def test_opposite_templates_are_clamped(self):
        assert template_similarity(encode_template([1, 0]), encode_template([-1, 0])) == 0.0
    
    def test_zero_vector_scores_zero(self):
        assert template_similarity(encode_template([0, 0]), encode_template([1, 0])) == 0.0
    
    def test_scale_invariant(self):
        assert template_similarity(encode_template([1, 1]), encode_template([3, 3])) == 1.0
    
    def test_size_mismatch(self):
        with pytest.raises(FeatureDecodeError):
            template_similarity(encode_template([1, 0]), encode_template([1, 0, 0]))
