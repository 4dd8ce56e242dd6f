# %%


import matplotlib.pyplot as plt
import numpy as np

from nrcrank.api import generate_random_sequences
from nrcrank.models import build_context_model, nrc_progression, score_sequence

# %%

rng = np.random.default_rng(7)
reference = "".join(rng.choice(list("ACGT"), size=20000))
model = build_context_model(reference, k=8)

candidates = {
    "reference_slice": reference[5000:6000],
    "half_shuffled": reference[5000:5500] + "".join(rng.choice(list("ACGT"), size=500)),
}
candidates.update(generate_random_sequences(1, 1000, seed=11))

# %%

fig, ax = plt.subplots(figsize=(10, 4))
for name, sequence in candidates.items():
    progression = nrc_progression(model, sequence, alpha=0.1)
    window = 25
    smoothed = np.convolve(progression, np.ones(window) / window, mode="valid")
    label = f"{name} (NRC={score_sequence(model, sequence, alpha=0.1):.3f})"
    ax.plot(np.arange(smoothed.size) + model.k, smoothed, label=label)

ax.set_xlabel("position")
ax.set_ylabel("NRC per step (fixed 4-letter alphabet)")
ax.legend()
plt.tight_layout()
plt.show()
