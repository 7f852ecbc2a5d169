"""
Q-Networks
==========

The function approximators used by the learning controllers.

Theory:
    Q-Learning estimates Q(s, a) = expected future reward of action a in s.
    A network outputs one Q-value per action (up, stay, down); outputs go
    through tanh since rewards and targets live in [-1, 1].

Masked targets:
    Training targets only carry information for the action that was taken.
    Every other entry is filled with a value below MASK_THRESHOLD (-5) and
    masked_huber_loss zeroes those entries in both predictions and targets,
    so they contribute no gradient.

Classes:
    DenseQNetwork  - MLP over a 6-value feature vector
    VisualQNetwork - CNN over a single-channel court frame
    QModel         - predict / fit / sample_action wrapper used by controllers
"""

from typing import Optional

import numpy as np
import torch
import torch.nn as nn
import torch.nn.functional as F
import torch.optim as optim

from ..config import Config
from ..game.pong import ACTIONS


def masked_huber_loss(
    predictions: torch.Tensor,
    targets: torch.Tensor,
    threshold: float = -5.0
) -> torch.Tensor:
    """
    Huber loss that ignores targets below threshold.

    Masked entries are set to zero in both tensors before averaging, so
    they add nothing to the loss or its gradient.
    """
    mask = targets < threshold
    zeros = torch.zeros_like(targets)
    masked_targets = torch.where(mask, zeros, targets)
    masked_predictions = torch.where(mask, zeros, predictions)
    return nn.SmoothL1Loss()(masked_predictions, masked_targets)


class DenseQNetwork(nn.Module):
    """
    Fully connected Q-network.

    Architecture:
        Input (n_inputs) → [Linear → ReLU → Dropout] x n_hidden_layers → Linear → tanh

    Example:
        >>> net = DenseQNetwork(n_inputs=6)
        >>> q_values = net(torch.zeros(1, 6))  # Shape: (1, 3)
    """

    def __init__(
        self,
        n_inputs: int = 6,
        n_hidden_layers: int = 2,
        n_hidden_units: int = 100,
        dropout: float = 0.2,
        n_actions: int = len(ACTIONS)
    ):
        super().__init__()

        self.n_inputs = n_inputs
        self.n_actions = n_actions
        self.hidden_sizes = [n_hidden_units] * n_hidden_layers

        self.layers = nn.ModuleList()
        self.dropout = nn.Dropout(dropout)
        self._build_network()
        self._init_weights()

    def _build_network(self) -> None:
        """Construct the linear layers."""
        layer_sizes = [self.n_inputs] + self.hidden_sizes + [self.n_actions]
        for i in range(len(layer_sizes) - 1):
            self.layers.append(nn.Linear(layer_sizes[i], layer_sizes[i + 1]))

    def _init_weights(self) -> None:
        """He initialization for the ReLU layers."""
        for layer in self.layers:
            nn.init.kaiming_normal_(layer.weight, nonlinearity='relu')
            nn.init.constant_(layer.bias, 0.0)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Args:
            x: Feature tensor of shape (batch_size, n_inputs)

        Returns:
            Q-values of shape (batch_size, n_actions), each in (-1, 1)
        """
        for layer in self.layers[:-1]:
            x = self.dropout(F.relu(layer(x)))
        return torch.tanh(self.layers[-1](x))

    def count_parameters(self) -> int:
        return sum(p.numel() for p in self.parameters() if p.requires_grad)


class VisualQNetwork(nn.Module):
    """
    Convolutional Q-network over one grayscale frame.

    Architecture:
        Input (1, H, W)
        → [Conv2d(same) → ReLU → Dropout → BatchNorm → MaxPool] x n_conv_layers
        → Flatten → [Linear → ReLU → Dropout] x n_dense_layers → Linear → tanh

    The first conv layer has n_filters channels, later ones half as many.
    """

    def __init__(
        self,
        input_height: int,
        input_width: int,
        n_conv_layers: int = 2,
        kernel_size: int = 3,
        n_filters: int = 40,
        max_pooling_size: int = 2,
        n_dense_layers: int = 2,
        n_hidden_units: int = 100,
        dropout: float = 0.2,
        n_actions: int = len(ACTIONS)
    ):
        super().__init__()

        self.input_height = input_height
        self.input_width = input_width
        self.n_actions = n_actions

        conv_blocks = []
        in_channels = 1
        for i in range(n_conv_layers):
            out_channels = n_filters if i == 0 else max(1, n_filters // 2)
            conv_blocks += [
                nn.Conv2d(in_channels, out_channels, kernel_size, padding=kernel_size // 2),
                nn.ReLU(),
                nn.Dropout(dropout),
                nn.BatchNorm2d(out_channels),
                nn.MaxPool2d(max_pooling_size, max_pooling_size),
            ]
            in_channels = out_channels
        self.features = nn.Sequential(*conv_blocks, nn.Flatten())

        # Infer flattened size from a dummy frame
        with torch.no_grad():
            n_flat = self.features(torch.zeros(1, 1, input_height, input_width)).shape[1]

        dense_blocks = []
        in_features = n_flat
        for _ in range(n_dense_layers):
            dense_blocks += [nn.Linear(in_features, n_hidden_units), nn.ReLU(), nn.Dropout(dropout)]
            in_features = n_hidden_units
        dense_blocks.append(nn.Linear(in_features, n_actions))
        self.head = nn.Sequential(*dense_blocks)

        self._init_weights()

    def _init_weights(self) -> None:
        for module in self.modules():
            if isinstance(module, (nn.Conv2d, nn.Linear)):
                nn.init.kaiming_normal_(module.weight, nonlinearity='relu')
                nn.init.constant_(module.bias, 0.0)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Args:
            x: Frame tensor of shape (batch_size, 1, H, W)

        Returns:
            Q-values of shape (batch_size, n_actions), each in (-1, 1)
        """
        return torch.tanh(self.head(self.features(x)))

    def count_parameters(self) -> int:
        return sum(p.numel() for p in self.parameters() if p.requires_grad)


class QModel:
    """
    The approximator interface controllers use.

    predict(x)                    -> (n, 3) numpy array of Q-values
    fit(x, y, epochs)             -> mean loss of the last epoch
    sample_action(x, temperature) -> -1, 0 or 1
    set_learning_rate(lr)

    Attributes:
        network: The wrapped torch module
        greedy: If True, sample_action always picks the best action
        loss: Loss from the most recent fit, or None
    """

    def __init__(
        self,
        network: nn.Module,
        lr: float = 0.01,
        batch_size: int = 80,
        mask_threshold: float = -5.0,
        grad_clip: float = 0.0,
        device: Optional[torch.device] = None,
        seed: Optional[int] = None
    ):
        self.device = device or torch.device('cpu')
        self.network = network.to(self.device)
        self.lr = lr
        self.batch_size = batch_size
        self.mask_threshold = mask_threshold
        self.grad_clip = grad_clip
        self.greedy = False
        self.loss: Optional[float] = None

        self.optimizer = optim.Adam(self.network.parameters(), lr=lr)

        # Used for shuffling and action sampling
        self._generator = torch.Generator()
        if seed is not None:
            self._generator.manual_seed(seed)

    def _to_tensor(self, x) -> torch.Tensor:
        return torch.as_tensor(np.asarray(x, dtype=np.float32), device=self.device)

    def predict(self, x) -> np.ndarray:
        """
        Run the network without dropout or gradient tracking.

        Args:
            x: Batch of inputs (array-like, first axis is the batch)
        """
        was_training = self.network.training
        self.network.eval()
        try:
            with torch.inference_mode():
                q_values = self.network(self._to_tensor(x))
        finally:
            if was_training:
                self.network.train()
        return q_values.cpu().numpy()

    def fit(self, x, y, epochs: int = 10, batch_size: Optional[int] = None, shuffle: bool = True) -> float:
        """
        Train on inputs x and (partly masked) targets y.

        Args:
            x: Batch of inputs
            y: Targets of shape (n, 3); entries below mask_threshold are ignored
            epochs: Passes over the data
            batch_size: Mini-batch size (clamped to n)
            shuffle: Shuffle samples every epoch

        Returns:
            Mean loss of the last epoch
        """
        inputs = self._to_tensor(x)
        targets = self._to_tensor(y)
        n = inputs.shape[0]
        if n == 0:
            raise ValueError("Cannot fit on an empty batch")
        batch_size = min(n, batch_size or self.batch_size)

        self.network.train()
        epoch_loss = 0.0
        for _ in range(epochs):
            if shuffle:
                order = torch.randperm(n, generator=self._generator).to(self.device)
            else:
                order = torch.arange(n, device=self.device)

            epoch_loss = 0.0
            for start in range(0, n, batch_size):
                idx = order[start:start + batch_size]
                predictions = self.network(inputs[idx])
                loss = masked_huber_loss(predictions, targets[idx], self.mask_threshold)

                self.optimizer.zero_grad()
                loss.backward()
                if self.grad_clip > 0:
                    torch.nn.utils.clip_grad_norm_(self.network.parameters(), self.grad_clip)
                self.optimizer.step()

                epoch_loss += loss.item() * len(idx)
            epoch_loss /= n

        self.loss = epoch_loss
        return epoch_loss

    def sample_action(self, x, temperature: float = 1.0) -> int:
        """
        Pick an action for a single input.

        Q-values are mapped to [0, 1], min-max normalized and turned into a
        distribution with softmax(log(p) / temperature). Lower temperatures
        favour the best action more strongly.

        Args:
            x: One input (without batch axis)
            temperature: Sampling temperature (> 0)

        Returns:
            -1, 0 or 1
        """
        if temperature <= 0:
            raise ValueError(f"Temperature must be positive (got {temperature})")

        q_values = torch.from_numpy(self.predict(np.expand_dims(np.asarray(x, dtype=np.float32), 0))[0])

        if self.greedy:
            return ACTIONS[int(q_values.argmax().item())]

        scores = (q_values + 1) / 2
        low, high = scores.min(), scores.max()
        if high - low <= 0:
            probs = torch.full_like(scores, 1.0 / len(scores))
        else:
            scores = (scores - low) / (high - low)
            probs = torch.softmax(torch.log(scores) / temperature, dim=0)

        index = int(torch.multinomial(probs, 1, generator=self._generator).item())
        return ACTIONS[index]

    def set_learning_rate(self, lr: float) -> None:
        """Change the optimizer's learning rate."""
        self.lr = lr
        for group in self.optimizer.param_groups:
            group['lr'] = lr


def build_dense_model(config: Optional[Config] = None, seed: Optional[int] = None) -> QModel:
    """Create the feature-vector model described by config."""
    cfg = config or Config()
    seed = cfg.SEED if seed is None else seed
    if seed is not None:
        torch.manual_seed(seed)
    network = DenseQNetwork(
        n_inputs=cfg.DENSE_N_INPUTS,
        n_hidden_layers=cfg.DENSE_HIDDEN_LAYERS,
        n_hidden_units=cfg.DENSE_HIDDEN_UNITS,
        dropout=cfg.DENSE_DROPOUT,
    )
    return QModel(
        network,
        lr=cfg.DENSE_LEARNING_RATE,
        batch_size=cfg.DENSE_BATCH_SIZE,
        mask_threshold=cfg.MASK_THRESHOLD,
        grad_clip=cfg.GRAD_CLIP,
        device=cfg.DEVICE,
        seed=seed,
    )


def build_visual_model(config: Optional[Config] = None, seed: Optional[int] = None) -> QModel:
    """Create the frame-based model described by config."""
    cfg = config or Config()
    seed = cfg.SEED if seed is None else seed
    if seed is not None:
        torch.manual_seed(seed)
    height, width = cfg.CAPTURE_SHAPE
    network = VisualQNetwork(
        input_height=height,
        input_width=width,
        n_conv_layers=cfg.VISUAL_CONV_LAYERS,
        kernel_size=cfg.VISUAL_KERNEL_SIZE,
        n_filters=cfg.VISUAL_FILTERS,
        max_pooling_size=cfg.VISUAL_POOL_SIZE,
        n_dense_layers=cfg.VISUAL_DENSE_LAYERS,
        n_hidden_units=cfg.VISUAL_HIDDEN_UNITS,
        dropout=cfg.VISUAL_DROPOUT,
    )
    return QModel(
        network,
        lr=cfg.VDQL_LEARNING_RATE,
        batch_size=cfg.VISUAL_BATCH_SIZE,
        mask_threshold=cfg.MASK_THRESHOLD,
        grad_clip=cfg.GRAD_CLIP,
        device=cfg.DEVICE,
        seed=seed,
    )

