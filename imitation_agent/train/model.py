"""
Small CNN that maps a 224x224 canvas to four direction probabilities.
"""

import logging
from dataclasses import dataclass

import numpy as np
import torch
import torch.nn as nn
import torch.nn.functional as F

from ..control.directions import DIRECTION_ORDER, OUTPUT_COUNT
from ..vision.scaling import to_tensor

logger = logging.getLogger(__name__)


@dataclass
class FitResult:
    """Loss and accuracy reported by one fit() call."""
    loss: float
    accuracy: float


class DirectionCNN(nn.Module):
    def __init__(self, num_outputs=OUTPUT_COUNT, filters=8):
        super().__init__()
        self.conv1 = nn.Conv2d(3, filters, 3)
        self.conv2 = nn.Conv2d(filters, filters, 3)
        self.fc = nn.Linear(filters, num_outputs)

    def forward(self, x):
        x = F.relu(self.conv1(x))
        x = F.max_pool2d(x, 3)  # 222 -> 74
        x = F.relu(self.conv2(x))
        x = F.max_pool2d(x, 3)  # 72 -> 24
        x = x.mean(dim=(2, 3))  # global average pool
        return self.fc(x)  # logits; softmax is applied by the caller


def soft_cross_entropy(logits, target):
    """Categorical cross-entropy against a (possibly multi-hot) target vector."""
    return -(target * F.log_softmax(logits, dim=1)).sum(dim=1).mean()


class TorchClassifier:
    """
    Trainable classifier with a fit/forward interface.

    fit() takes one canvas and its label and runs plain SGD on it. forward()
    never updates weights.
    """

    def __init__(self, model: nn.Module | None = None, learning_rate: float = 0.01, device: str = "cpu"):
        self.device = device
        self.model = (model or DirectionCNN()).to(device)
        self.learning_rate = learning_rate
        self.opt = torch.optim.SGD(self.model.parameters(), lr=learning_rate)

    def _inputs(self, image) -> torch.Tensor:
        if isinstance(image, torch.Tensor):
            x = image if image.dim() == 4 else image.unsqueeze(0)
        else:
            x = to_tensor(np.asarray(image))
        return x.to(self.device)

    def fit(self, image, label, epochs: int = 1, batch_size: int = 1) -> FitResult:
        """
        Train on a single example.

        Args:
            image: uint8 BGR canvas or a prepared (1, 3, H, W) tensor
            label: 0/1 flags in DIRECTION_ORDER
            epochs: Passes over the example
            batch_size: Chunk size when splitting the inputs. With one example
                        this only changes how results are aggregated.

        Returns:
            FitResult for the last epoch
        """
        x = self._inputs(image)
        y = torch.as_tensor(np.asarray(label, dtype=np.float32), device=self.device).reshape(-1, OUTPUT_COUNT)

        self.model.train()
        loss_value, acc_value = 0.0, 0.0
        for _ in range(epochs):
            total_loss = 0.0
            correct = 0
            n = 0
            for start in range(0, x.size(0), batch_size):
                xb, yb = x[start:start + batch_size], y[start:start + batch_size]
                logits = self.model(xb)
                loss = soft_cross_entropy(logits, yb)
                self.opt.zero_grad()
                loss.backward()
                self.opt.step()
                total_loss += loss.item() * xb.size(0)
                correct += (logits.argmax(dim=1) == yb.argmax(dim=1)).sum().item()
                n += xb.size(0)
            loss_value = total_loss / n
            acc_value = correct / n
        return FitResult(loss=loss_value, accuracy=acc_value)

    def forward(self, image) -> np.ndarray:
        """Direction probabilities for one canvas, shape (4,)."""
        x = self._inputs(image)
        self.model.eval()
        with torch.no_grad():
            probs = F.softmax(self.model(x), dim=1)
        return probs[0].cpu().numpy()

    def summary(self) -> str:
        n_params = sum(p.numel() for p in self.model.parameters())
        return f"{self.model.__class__.__name__}: {n_params:,} parameters on {self.device}"

    def save(self, path):
        checkpoint = {
            'model_state_dict': self.model.state_dict(),
            'direction_order': list(DIRECTION_ORDER),
            'output_count': OUTPUT_COUNT,
            'learning_rate': self.learning_rate,
        }
        torch.save(checkpoint, path)
        logger.info("Saved classifier to %s", path)

    @classmethod
    def load(cls, path, device: str = "cpu") -> "TorchClassifier":
        """Load a classifier saved with save()."""
        checkpoint = torch.load(path, map_location=device, weights_only=False)

        order = tuple(checkpoint.get('direction_order', DIRECTION_ORDER))
        if order != DIRECTION_ORDER:
            raise ValueError(f"Checkpoint direction order {order} does not match {DIRECTION_ORDER}")

        model = DirectionCNN(num_outputs=checkpoint['output_count'])
        model.load_state_dict(checkpoint['model_state_dict'])
        classifier = cls(model=model, learning_rate=checkpoint.get('learning_rate', 0.01), device=device)
        logger.info("Loaded classifier from %s", path)
        return classifier
