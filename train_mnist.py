# train_mnist.py
import argparse

from convnet import Conv2D, FullyConnectedLayer, MaxPool2D, Network, Params, load_mnist
from convnet.helpers.logger import RunLogger


def get_args():
    parser = argparse.ArgumentParser(description="Train a conv net on MNIST IDX files.")

    # Data
    parser.add_argument('--data-dir', type=str, default="data", help='Directory holding the MNIST IDX files (optionally .gz).')
    parser.add_argument('--num-training', type=int, default=10000, help='Number of training images to load.')
    parser.add_argument('--num-test', type=int, default=10000, help='Number of test images to load.')
    parser.add_argument('--validation-size', type=int, default=1000, help='Images taken from the end of the training set for validation.')

    # Learning settings
    parser.add_argument('--learning-rate', type=float, default=0.1, help='SGD learning rate.')
    parser.add_argument('--lam', type=float, default=5.0, help='L2 weight decay (regularization) coefficient.')
    parser.add_argument('--batch-size', type=int, default=10, help='Mini-batch size.')
    parser.add_argument('--epochs', type=int, default=30, help='Number of epochs.')
    parser.add_argument('--seed', type=int, default=42, help='Random seed for weights and shuffling.')
    parser.add_argument('--workers', type=int, default=4, help='Worker threads per mini-batch.')
    parser.add_argument('--cost', type=str, default="cross_entropy", choices=["cross_entropy", "quadratic"])

    # Monitoring
    parser.add_argument('--monitor-interval', type=int, default=1000, help='Monitor every N training samples.')
    parser.add_argument('--monitor-evaluation-accuracy', action='store_true')
    parser.add_argument('--monitor-evaluation-cost', action='store_true')
    parser.add_argument('--monitor-training-accuracy', action='store_true')
    parser.add_argument('--monitor-training-cost', action='store_true')
    parser.add_argument('--verbose', type=int, default=1, choices=[0, 1, 2])
    parser.add_argument('--runs-root', type=str, default="runs", help='Where run histories and plots are written.')
    return parser.parse_args()


def build_network(params):
    # Conv(5x5, 1 map) -> MaxPool(2x2) -> FC(100) -> FC(10) -> Softmax(10)
    conv1 = Conv2D((5, 5, 1), (28, 28, 1), num_feature_maps=1)
    pool1 = MaxPool2D((2, 2), conv1.shape)
    fc1 = FullyConnectedLayer(100, pool1.size)
    fc2 = FullyConnectedLayer(10, fc1.size)
    return Network(params, [conv1, pool1, fc1, fc2], input_shape=(28, 28), num_classes=10)


if __name__ == "__main__":
    args = get_args()
    params = Params(
        learning_rate=args.learning_rate,
        lam=args.lam,
        mb_size=args.batch_size,
        num_epochs=args.epochs,
        seed=args.seed,
        num_workers=args.workers,
        cost=args.cost,
        monitor_interval=args.monitor_interval,
        monitor_evaluation_accuracy=args.monitor_evaluation_accuracy,
        monitor_evaluation_cost=args.monitor_evaluation_cost,
        monitor_training_accuracy=args.monitor_training_accuracy,
        monitor_training_cost=args.monitor_training_cost,
        verbose=args.verbose,
    )
    print(params)

    print("Reading MNIST")
    data = load_mnist(args.data_dir, args.num_training, args.num_test, args.validation_size)
    print(data)

    print("Creating the network")
    tag = f"MNIST_epochs_{args.epochs}_lr_{args.learning_rate}_bs_{args.batch_size}"
    logger = RunLogger(root=args.runs_root, tag=tag)
    with build_network(params) as network:
        print(network)
        history = network.sgd(data, run_logger=logger)
        correct = network.evaluate_accuracy(data.test.images, data.test.labels)
        print(f"Accuracy on test data: {correct} / {len(data.test)}")
    logger.plot_all(history, tag=tag)
